from datetime import date

import numpy as np
import pytest

from docscan.geometry import CornerPoints, Point
from docscan.imaging import OpenCVImageProcessor
from docscan.loader import CollaboratorLoader
from docscan.mrz import calculate_check_digit
from docscan.ocr import OCRText
from docscan.pipeline import Collaborators

TODAY = date(2026, 1, 1)

ICAO_TD3 = [
	"P<UTOERIKSSON<<ANNA<MARIA".ljust(44, "<"),
	"L898902C36UTO7408122F1204159ZE184226B<<<<<10",
]


def cd(data):
	return str(calculate_check_digit(data))


def build_td1(
	doc="123456789",
	birth="900101",
	sex="H",
	expiry="301231",
	names="GARCIA<HERNANDEZ<<JUAN<PABLO",
	optional="0123456789012",
):
	"""Three 30-character INE MRZ lines with correct check digits."""
	line1 = ("IDMEX" + doc + cd(doc) + "<<" + optional)[:30].ljust(30, "<")
	line2 = (birth + cd(birth) + sex + expiry + cd(expiry) + "MEX").ljust(29, "<")
	composite = line1[5:30] + line2[0:7] + line2[8:15] + line2[18:29]
	line2 += cd(composite)
	line3 = names.ljust(30, "<")
	return [line1, line2, line3]


def build_td3(
	doc="G12345678",
	birth="900101",
	sex="M",
	expiry="301231",
	names="GARCIA<HERNANDEZ<<JUAN<PABLO",
	nationality="MEX",
):
	"""Two 44-character passport MRZ lines with correct check digits and no personal number."""
	line1 = ("P<" + nationality + names).ljust(44, "<")
	line2 = doc + cd(doc) + nationality + birth + cd(birth) + sex + expiry + cd(expiry) + "<" * 14 + "<"
	composite = line2[0:10] + line2[13:20] + line2[21:43]
	line2 += cd(composite)
	return [line1, line2]


def flip_digit(line, index):
	"""Replace the digit at ``index`` with a different digit."""
	return line[:index] + str((int(line[index]) + 1) % 10) + line[index + 1:]


INE_FRONT_TEXT = "\n".join([
	"INSTITUTO NACIONAL ELECTORAL",
	"CREDENCIAL PARA VOTAR",
	"NOMBRE",
	"GARCIA",
	"HERNANDEZ",
	"JUAN PABLO",
	"DOMICILIO",
	"C SOL 123",
	"COL CENTRO 06000",
	"CUAUHTEMOC, CDMX",
	"CLAVE DE ELECTOR",
	"CURP GAHJ900101HDFRRN09",
	"FECHA DE NACIMIENTO 01/01/1990",
	"SECCIÓN 1234",
	"VIGENCIA 2020 - 2030",
	"SEXO H",
])


def rectangle(x0, y0, x1, y1):
	return CornerPoints(
		top_left=Point(x0, y0),
		top_right=Point(x1, y0),
		bottom_left=Point(x0, y1),
		bottom_right=Point(x1, y1),
	)


class FakeContourDetector:
	def __init__(self, corners=None, error=None):
		self.corners = corners
		self.error = error

	def find_document_contour(self, image):
		if self.error:
			raise self.error
		return self.corners

	def corners_of(self, contour):
		return contour


class FakeEngine:
	"""Returns canned text per language; counts instances through the shared ``created`` list."""

	def __init__(self, texts, confidence=85.0, created=None, error=None):
		self.texts = texts
		self.confidence = confidence
		self.error = error
		if created is not None:
			created.append(self)

	def recognize(self, image, language, options):
		if self.error:
			raise self.error
		return OCRText(text=self.texts.get(language, ""), confidence=self.confidence)


def fake_collaborators(texts, corners=None, confidence=85.0, created=None):
	return Collaborators(
		image=CollaboratorLoader.ready("image", OpenCVImageProcessor()),
		contours=CollaboratorLoader.ready("contours", FakeContourDetector(corners)),
		ocr=CollaboratorLoader.ready("ocr", lambda: FakeEngine(texts, confidence, created)),
	)


@pytest.fixture
def white_photo():
	return np.full((800, 1200, 3), 255, dtype=np.uint8)
