from docscan.fields import (
	cleanup_name,
	extract_address,
	extract_curp,
	extract_date,
	extract_gender,
	extract_label_fields,
	extract_name,
	extract_nationality,
	extract_passport_dates,
	extract_passport_number,
	extract_section,
	extract_validity,
)

from conftest import INE_FRONT_TEXT, TODAY

PASSPORT_DATES_TEXT = "\n".join([
	"FECHA DE NACIMIENTO / DATE OF BIRTH",
	"12 05 1985",
	"FECHA DE EXPEDICIÓN / DATE OF ISSUE",
	"10 03 2020",
	"FECHA DE CADUCIDAD / DATE OF EXPIRY",
	"10 03 2030",
])


class TestCleanupName:
	def test_proper_cases_words(self):
		assert cleanup_name("  JUAN   PABLO  ") == "Juan Pablo"

	def test_drops_watermark_noise(self):
		assert cleanup_name("ll JUAN ooo") == "Juan"

	def test_keeps_hyphenated_names(self):
		assert cleanup_name("MARIA-JOSE") == "Maria-Jose"

	def test_symbols_removed(self):
		assert cleanup_name("«GARCIA» $LOPEZ") == "Garcia Lopez"

	def test_empty(self):
		assert cleanup_name("") == ""


class TestINELabels:
	"""Printed front of an INE card."""

	def test_name_spans_following_lines(self):
		assert extract_name(INE_FRONT_TEXT) == {
			"full_name": "Garcia Hernandez Juan Pablo",
			"last_name": "Garcia",
			"second_last_name": "Hernandez",
			"first_name": "Juan Pablo",
		}

	def test_name_on_label_line(self):
		name = extract_name("NOMBRE LOPEZ PEREZ MARIA\nDOMICILIO")
		assert name["last_name"] == "Lopez"
		assert name["first_name"] == "Maria"

	def test_no_name_label(self):
		assert extract_name("INSTITUTO NACIONAL ELECTORAL") == {}

	def test_curp(self):
		assert extract_curp(INE_FRONT_TEXT) == "GAHJ900101HDFRRN09"

	def test_curp_letter_o_in_digit_slots(self):
		assert extract_curp("CURP GAHJ9OO1O1HDFRRN0O") == "GAHJ900101HDFRRN00"

	def test_birth_date(self):
		assert extract_date(INE_FRONT_TEXT, "FECHA DE NACIMIENTO") == "1990-01-01"

	def test_date_on_next_line(self):
		assert extract_date("FECHA DE NACIMIENTO\n15/07/1988", "FECHA DE NACIMIENTO") == "1988-07-15"

	def test_spanish_month_names(self):
		assert extract_date("NACIMIENTO 3 ABRIL 1975", "NACIMIENTO") == "1975-04-03"

	def test_validity_range(self):
		assert extract_validity(INE_FRONT_TEXT) == "2030-12-31"

	def test_gender_hombre_is_male(self):
		assert extract_gender("SEXO H") == "M"
		assert extract_gender("SEXO M") == "F"
		assert extract_gender("NOMBRE") is None

	def test_address_lines(self):
		assert extract_address(INE_FRONT_TEXT) == "C SOL 123, COL CENTRO 06000, CUAUHTEMOC, CDMX"

	def test_section(self):
		assert extract_section(INE_FRONT_TEXT) == "1234"

	def test_label_fields(self):
		fields = extract_label_fields(INE_FRONT_TEXT, today=TODAY)
		assert fields.curp == "GAHJ900101HDFRRN09"
		assert fields.birth_date == "1990-01-01"
		assert fields.validity == "2030-12-31"
		assert fields.gender == "M"
		assert fields.section == "1234"
		assert fields.passport_number is None


class TestPassportLabels:
	def test_dates_classified_by_context(self):
		assert extract_passport_dates(PASSPORT_DATES_TEXT, 2026) == {
			"birth_date": "1985-05-12",
			"issue_date": "2020-03-10",
			"expiry_date": "2030-03-10",
		}

	def test_unlabelled_future_date_is_expiry(self):
		assert extract_passport_dates("01 02 2031", 2026) == {"expiry_date": "2031-02-01"}

	def test_name_from_mrz_style_line(self):
		name = extract_name("P<MEXGARCIA<HERNANDEZ<<JUAN<PABLO<<<<<<<<<<<", is_passport=True)
		assert name["last_name"] == "GARCIA"
		assert name["second_last_name"] == "HERNANDEZ"
		assert name["first_name"] == "JUAN"

	def test_name_from_labels(self):
		text = "APELLIDOS / SURNAME\nGARCIA LOPEZ\nNOMBRES / GIVEN NAMES\nANA SOFIA"
		name = extract_name(text, is_passport=True)
		assert name["first_name"] == "Ana Sofia"
		assert name["last_name"] == "Garcia"
		assert name["second_last_name"] == "Lopez"

	def test_number_after_label(self):
		assert extract_passport_number("PASAPORTE NO. G12345678") == "G12345678"

	def test_standalone_number_with_letter_o(self):
		assert extract_passport_number("MEXICO G1234567O") == "G12345670"

	def test_nationality(self):
		assert extract_nationality("NACIONALIDAD: MEXICANA") == "MEXICANA"
		assert extract_nationality("ESTADOS UNIDOS MEXICANOS") is None

	def test_gender_on_next_line(self):
		assert extract_gender("SEXO / SEX\nF", is_passport=True) == "F"

	def test_label_fields(self):
		text = "PASAPORTE\nPASAPORTE NO. G12345678\nNACIONALIDAD: MEXICANA\n" + PASSPORT_DATES_TEXT
		fields = extract_label_fields(text, is_passport=True, today=TODAY)
		assert fields.passport_number == "G12345678"
		assert fields.nationality == "MEXICANA"
		assert fields.birth_date == "1985-05-12"
		assert fields.expiry_date == "2030-03-10"
		assert fields.validity == "2030-03-10"
		assert fields.address is None
