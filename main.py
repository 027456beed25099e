import asyncio
import json
import time

import streamlit as st

from docscan.config import settings
from docscan.crossval import authenticity_score, compare_with_personal_data
from docscan.logging_config import configure_logging
from docscan.models import PersonalData
from docscan.pipeline import Collaborators, scan_document

configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)


@st.cache_resource
def get_collaborators():
    return Collaborators.default()


def submit_action(file_data, document_type, personal_data):
    start_time = time.time()
    outcome = asyncio.run(
        scan_document(file_data.read(), get_collaborators(), document_type, personal_data)
    )
    execution_time = time.time() - start_time
    return outcome, execution_time


st.title("Validación de INE y Pasaporte")
st.write("Detecta el documento, corrige la perspectiva, lee la zona MRZ y valida los datos.")

file_data = st.file_uploader("Sube una foto del documento", type=["jpg", "jpeg", "png", "webp"])
document_type = st.radio("Tipo de documento", ["INE/IFE", "Pasaporte"], horizontal=True)

with st.expander("Datos declarados (opcional)"):
    first_name = st.text_input("Nombre(s)")
    last_name = st.text_input("Apellido paterno")
    second_last_name = st.text_input("Apellido materno")
    curp = st.text_input("CURP")
    birth_date = st.text_input("Fecha de nacimiento (AAAA-MM-DD)")

if st.button("Submit"):
    if file_data is None:
        st.error("Please upload a file first")
    else:
        personal_data = None
        if any([first_name, last_name, second_last_name, curp, birth_date]):
            personal_data = PersonalData(
                first_name=first_name or None,
                last_name=last_name or None,
                second_last_name=second_last_name or None,
                curp=curp or None,
                birth_date=birth_date or None,
            )

        outcome, execution_time = submit_action(file_data, document_type, personal_data)

        if outcome is None:
            st.error("Could not decode the uploaded image")
        else:
            result = outcome.ocr
            st.info(f"⏱️ Execution Time: {execution_time:.2f} seconds")
            st.write(f"Detection confidence: {outcome.detection.confidence:.2f}")

            if not result.success:
                st.error(result.message)
            elif result.is_valid:
                st.success(result.message)
            else:
                st.warning(result.message)

            if outcome.quality and not outcome.quality.is_valid:
                for issue in outcome.quality.issues:
                    st.warning(issue)

            st.markdown("### Extracted Data")
            st.code(json.dumps(result.detected_fields.to_dict(), indent=2, ensure_ascii=False), language="json")

            if result.mrz_data:
                st.markdown("### MRZ")
                st.markdown("\n".join(f"> `{line}`" for line in result.mrz_data.raw_lines))
                st.code(json.dumps(result.mrz_data.to_dict(), indent=2, ensure_ascii=False), language="json")
                st.write(f"Authenticity score: {authenticity_score(result):.2f}")

            if personal_data:
                st.markdown("### Comparison")
                rows = [
                    {
                        "Campo": c.label,
                        "Documento": c.document_value,
                        "Declarado": c.personal_value,
                        "Coincide": c.matches,
                        "Fuente": c.source,
                    }
                    for c in compare_with_personal_data(result, personal_data)
                ]
                st.table(rows)

            if outcome.extraction.success:
                st.image(outcome.extraction.image, channels="BGR", caption="Extracted Document", width='stretch')

            file_data.seek(0)
            st.image(file_data, caption="Uploaded Image", width='stretch')
