import streamlit as st

from docscan.config import settings
from docscan.logging_config import configure_logging

configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

st.set_page_config(
    page_title="INE & Passport Scanner",
    page_icon="🪪",
    layout="wide"
)

st.title("🪪 INE & Passport Document Scanner")
st.markdown("### Captura y validación de documentos de identidad mexicanos")

st.markdown("""
---

## 📖 What does it check?

Mexican voter cards (**INE/IFE**) and **passports** carry a Machine Readable Zone (MRZ) formatted
according to ICAO Doc 9303. Every date and number in it is protected by a check digit, so a correctly
read MRZ is strong evidence that the document is genuine and was captured cleanly.

## 🔄 Pipeline

1. **Corner detection** - the document outline is found and scored; low-confidence captures fall back
   to a padded full frame for manual adjustment
2. **Perspective correction** - the quadrilateral is warped into an upright rectangle
3. **Two OCR passes** - a general Spanish pass for the printed labels and a whitelisted pass over the
   bottom MRZ band
4. **MRZ decoding** - TD1 (INE, 3×30) and TD3 (passport, 2×44) with check-digit verification
5. **Cross-validation** - MRZ values take precedence over label heuristics, fields are compared
   against the declared identity and expired documents are rejected

## 📄 Extracted Information

- Full name split into nombre(s), apellido paterno and apellido materno
- CURP, INE document number or passport number
- Date of birth, sex and nationality
- Expiry date (VIGENCIA), issue date and address

## 🔧 How to Use

1. **Individual**: scan a single document and review every field, the MRZ and the comparison
2. **Multiple**: process a batch and download an Excel report

## 🔒 Privacy & Security

- All processing happens on this server
- Declared personal data is only used for comparison and never stored
""")

st.info("👈 Select a processing mode from the sidebar to get started!")
