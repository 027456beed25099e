import streamlit as st
import asyncio
import json
import time
import io
import pandas as pd
from xlsxwriter.utility import xl_col_to_name

from docscan.pipeline import Collaborators, scan_document

VALIDITY_COLS = [
    "Document Number Valid",
    "Birth Date Valid",
    "Expiry Date Valid",
    "Overall Valid",
]


@st.cache_resource
def get_collaborators():
    return Collaborators.default()


def submit_action(file_data, document_type):
    start_time = time.time()
    outcome = asyncio.run(scan_document(file_data.read(), get_collaborators(), document_type))
    execution_time = time.time() - start_time
    return outcome, execution_time


def outcome_row(file_name, outcome, execution_time):
    result = outcome.ocr
    fields = result.detected_fields
    mrz = result.mrz_data
    checks = mrz.check_digits if mrz else None
    return {
        "File Name": file_name,
        "Execution Time (seconds)": f"{execution_time:.2f}",
        "Detection Confidence": round(outcome.detection.confidence, 2),
        "Document Type": result.document_type.value,
        "Document Number": fields.ine_document_number or fields.passport_number,
        "Document Number Valid": checks.document_number if checks else None,
        "Full Name": fields.full_name,
        "CURP": fields.curp,
        "Sex": fields.gender,
        "Birth Date": fields.birth_date,
        "Birth Date Valid": checks.birth_date if checks else None,
        "Expiry Date": fields.validity,
        "Expiry Date Valid": checks.expiry_date if checks else None,
        "Overall Valid": checks.overall if checks else None,
        "Expired": result.is_expired,
        "Valid": result.is_valid,
        "Reason": result.failure_reason.value,
        "Message": result.message,
        "MRZ Text": "\n".join(mrz.raw_lines) if mrz else None,
    }


def is_error_row(row):
    if row.get("Document Type") == "UNKNOWN":
        return True
    if row.get("Valid") == False:
        return True
    return any(row.get(col) == False for col in VALIDITY_COLS)


def build_workbook(df):
    summary_cols = [
        "File Name",
        "Document Type",
        "Document Number",
        "Full Name",
        "CURP",
        "Sex",
        "Birth Date",
        "Expiry Date",
    ]
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="xlsxwriter") as writer:
        error_mask = df.apply(is_error_row, axis=1)
        error_df = df[error_mask].copy()
        clean_df = df[~error_mask].copy()

        # Summary holds only documents that passed every check
        clean_df.reindex(columns=summary_cols).to_excel(writer, index=False, sheet_name="Summary")
        if len(error_df) > 0:
            error_df.to_excel(writer, index=False, sheet_name="Error")
        df.to_excel(writer, index=False, sheet_name="All Data")

        workbook = writer.book
        invalid_row_fmt = workbook.add_format({"bg_color": "#FF0000", "font_color": "white"})
        invalid_strike_fmt = workbook.add_format(
            {"font_color": "white", "font_strikeout": True, "bg_color": "#FF0000"}
        )
        unknown_row_fmt = workbook.add_format({"bg_color": "#FFF200"})
        expired_row_fmt = workbook.add_format({"bg_color": "#F4B183"})

        def doc_type_guard(cols_order):
            doc_col_letter = xl_col_to_name(cols_order.index("Document Type"))
            return f"${doc_col_letter}2<>\"UNKNOWN\""

        def apply_unknown(ws, cols_order, last_row):
            doc_col_letter = xl_col_to_name(cols_order.index("Document Type"))
            ws.conditional_format(
                1, 0, last_row, len(cols_order) - 1,
                {"type": "formula", "criteria": f"=${doc_col_letter}2=\"UNKNOWN\"", "format": unknown_row_fmt},
            )

        def apply_expired(ws, cols_order, last_row):
            expired_letter = xl_col_to_name(cols_order.index("Expired"))
            ws.conditional_format(
                1, 0, last_row, len(cols_order) - 1,
                {"type": "formula", "criteria": f"=${expired_letter}2=TRUE", "format": expired_row_fmt},
            )

        def apply_row_highlight(ws, cols_order, last_row):
            terms = [f"${xl_col_to_name(cols_order.index(vc))}2=FALSE" for vc in VALIDITY_COLS]
            formula = f"=AND({doc_type_guard(cols_order)},OR({','.join(terms)}))"
            ws.conditional_format(
                1, 0, last_row, len(cols_order) - 1,
                {"type": "formula", "criteria": formula, "format": invalid_row_fmt},
            )

        def apply_cell_strike(ws, display_col, valid_col, cols_order, last_row):
            c_disp = cols_order.index(display_col)
            valid_col_letter = xl_col_to_name(cols_order.index(valid_col))
            criteria = f"=AND({doc_type_guard(cols_order)},{valid_col_letter}2=FALSE)"
            ws.conditional_format(
                1, c_disp, last_row, c_disp,
                {"type": "formula", "criteria": criteria, "format": invalid_strike_fmt},
            )

        def format_detail_sheet(ws, frame):
            cols_order = list(frame.columns)
            last_row = len(frame)
            apply_unknown(ws, cols_order, last_row)
            apply_expired(ws, cols_order, last_row)
            apply_row_highlight(ws, cols_order, last_row)
            apply_cell_strike(ws, "Document Number", "Document Number Valid", cols_order, last_row)
            apply_cell_strike(ws, "Birth Date", "Birth Date Valid", cols_order, last_row)
            apply_cell_strike(ws, "Expiry Date", "Expiry Date Valid", cols_order, last_row)

        if len(error_df) > 0:
            error_ws = writer.sheets["Error"]
            format_detail_sheet(error_ws, error_df)
            error_cols = list(error_df.columns)
            for vc in VALIDITY_COLS:
                idx = error_cols.index(vc)
                error_ws.set_column(idx, idx, None, None, {"hidden": True})

        format_detail_sheet(writer.sheets["All Data"], df)

    buffer.seek(0)
    return buffer.getvalue()


st.title("Validación de INE y Pasaporte (lote)")
st.write("Procesa varios documentos y descarga un reporte en Excel.")

if 'collected_data' not in st.session_state:
    st.session_state.collected_data = None
if 'excel_buffer' not in st.session_state:
    st.session_state.excel_buffer = None

uploaded_files = st.file_uploader("Upload files", accept_multiple_files=True)
document_type = st.radio("Tipo de documento", ["INE/IFE", "Pasaporte"], horizontal=True)

if st.button("Submit"):
    if not uploaded_files:
        st.error("Please upload at least one file first")
    else:
        st.success(f"Processing {len(uploaded_files)} file(s)...")
        collected_data = []

        for file_data in uploaded_files:
            outcome, execution_time = submit_action(file_data, document_type)
            if outcome is None:
                st.error(f"Could not decode {file_data.name}")
                continue
            if not outcome.ocr.success:
                st.error(f"{file_data.name}: {outcome.ocr.message}")
            collected_data.append(outcome_row(file_data.name, outcome, execution_time))

        if collected_data:
            st.session_state.collected_data = collected_data
            st.session_state.excel_buffer = build_workbook(pd.DataFrame(collected_data))
        else:
            st.error("No documents were successfully processed")

if st.session_state.collected_data:
    st.download_button(
        label="Download Excel",
        data=st.session_state.excel_buffer,
        file_name="document_validation.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
    st.code(json.dumps(st.session_state.collected_data, indent=2, ensure_ascii=False), language="json")
