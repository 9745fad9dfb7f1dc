import streamlit as st
import pandas as pd
from pyvis.network import Network
import streamlit.components.v1 as components

from mbom_api import ConversionAPIError, ConversionClient, ConversionFailed
from mbom_export import export_frame, to_csv_bytes, to_excel_bytes, to_pdf_bytes
from mbom_graph import CHANGE_STYLE, resolve, to_networkx
from mbom_logging import configure_logging
from mbom_models import (
    ChangeType,
    CORRECTABLE_FIELDS,
    FieldCorrection,
    ManufacturingBomItem,
    insert_item,
    move_item,
    remove_item,
    update_item,
    validate_unique_part_numbers,
)
from mbom_settings import get_settings
from mbom_stats import aggregate

# ==========================================
# 1. PAGE CONFIG & STYLING
# ==========================================
st.set_page_config(page_title="mBOM Workbench", layout="wide", page_icon="🏭")

st.markdown("""
<style>
    .block-container {padding-top: 1rem !important;}
    .legend-item {
        display: flex;
        align-items: center;
        margin-bottom: 6px;
        font-family: 'Segoe UI', sans-serif;
        font-size: 13px;
    }
    .legend-color {
        width: 16px;
        height: 16px;
        margin-right: 10px;
        border-radius: 3px;
        border: 1px solid rgba(0,0,0,0.1);
    }
</style>
""", unsafe_allow_html=True)

configure_logging()
settings = get_settings()


@st.cache_resource
def get_client():
    return ConversionClient()


client = get_client()

# Session keys: conversion_id, mbom (tuple snapshot), ebom, explanation, dirty
for key, default in [("conversion_id", None), ("mbom", ()), ("ebom", ()),
                     ("explanation", {}), ("dirty", False)]:
    st.session_state.setdefault(key, default)


# ==========================================
# 2. DATA LOADING
# ==========================================
def load_conversion(conversion_id):
    try:
        bom = client.get_bom_data(conversion_id)
        explanation = client.get_explanation(conversion_id)
    except ConversionAPIError as e:
        st.error(f"Failed to load conversion data: {e}")
        return
    st.session_state.conversion_id = conversion_id
    st.session_state.ebom = bom.ebom
    st.session_state.mbom = bom.mbom
    st.session_state.explanation = explanation
    st.session_state.dirty = False


def run_conversion(uploaded_file):
    progress = st.progress(0, text="Uploading...")
    try:
        upload_id = client.upload_file((uploaded_file.name, uploaded_file.getvalue()))
        conversion_id = client.start_conversion(upload_id)

        def on_update(status):
            stage = status.current_stage or status.status
            progress.progress(status.progress, text=f"{stage.title()} ({status.progress}%)")

        client.wait_for_completion(conversion_id, on_update=on_update)
    except ConversionFailed as e:
        st.error(f"Conversion failed: {e}. Please upload the file again.")
        return
    except ConversionAPIError as e:
        st.error(f"Backend error: {e}")
        return
    load_conversion(conversion_id)


def set_snapshot(items):
    st.session_state.mbom = items
    st.session_state.dirty = True


# ==========================================
# 3. GRAPH RENDERING
# ==========================================
def render_graph(items):
    graph = resolve(
        items,
        horizontal_spacing=settings.graph_horizontal_spacing,
        vertical_spacing=settings.graph_vertical_spacing,
    )
    G = to_networkx(graph)

    net = Network(height="650px", width="100%", bgcolor="#ffffff", font_color="#333", directed=True)
    net.from_nx(G)

    # Positions come from the resolver, so physics stays off
    net.set_options("""
    {
      "nodes": { "borderWidth": 1, "font": { "size": 14, "face": "Segoe UI" } },
      "edges": {
        "arrows": { "to": { "enabled": true } },
        "smooth": { "type": "cubicBezier", "forceDirection": "vertical", "roundness": 0.4 }
      },
      "interaction": { "hover": true, "tooltipDelay": 50 },
      "physics": { "enabled": false }
    }
    """)

    try:
        components.html(net.generate_html(), height=700, scrolling=False)
    except Exception as e:
        st.error(f"Graph Render Error: {e}")

    dangling = graph.dangling_edges()
    if dangling:
        st.caption("Unresolved dependencies: " + ", ".join(e.source for e in dangling))


# ==========================================
# 4. SIDEBAR
# ==========================================
st.title("🏭 mBOM Workbench")

with st.sidebar:
    st.header("1. Upload eBOM")
    uploaded_file = st.file_uploader("Upload BOM", type=["xlsx", "xls", "csv"])
    if uploaded_file is not None and st.button("Convert", type="primary"):
        run_conversion(uploaded_file)

    st.markdown("---")
    st.header("Legend")
    for change, style in CHANGE_STYLE.items():
        st.markdown(f"""
        <div class="legend-item">
            <div class="legend-color" style="background-color: {style['color']};"></div>
            <div><strong>{style['label']}</strong></div>
        </div>
        """, unsafe_allow_html=True)

tab_editor, tab_graph, tab_history = st.tabs(["Editor", "Dependency Graph", "History"])

# ==========================================
# 5. EDITOR
# ==========================================
with tab_editor:
    items = st.session_state.mbom
    if not st.session_state.conversion_id:
        st.info("Upload an eBOM or open a conversion from the History tab.")
    else:
        stats = aggregate(items)
        cols = st.columns(6)
        cols[0].metric("Total Parts", stats.total_parts)
        cols[1].metric("Added", stats.added_parts)
        cols[2].metric("Modified", stats.modified_parts)
        cols[3].metric("Grouped", stats.grouped_parts)
        cols[4].metric("Unchanged", stats.unchanged_parts)
        cols[5].metric("Avg Confidence", f"{stats.avg_confidence}%")

        explanation = st.session_state.explanation
        with st.expander("🤖 AI Explanation"):
            st.write(explanation.get("summary") or "No summary available.")
            for change in explanation.get("keyChanges") or []:
                st.markdown(f"- {change}")
            if explanation.get("reasoning"):
                st.caption(explanation["reasoning"])

        duplicates = validate_unique_part_numbers(items)
        if duplicates:
            st.warning(f"Duplicate part numbers: {', '.join(duplicates)}")

        col_e, col_m = st.columns([1, 2])
        with col_e:
            st.subheader("eBOM")
            st.dataframe(pd.DataFrame([i.to_dict() for i in st.session_state.ebom]))
        with col_m:
            st.subheader("mBOM")
            st.dataframe(export_frame(items), use_container_width=True)

        if items:
            labels = [f"{i}: {item.part_number}" for i, item in enumerate(items)]
            index = st.selectbox("Select item", range(len(items)), format_func=lambda i: labels[i])
            item = items[index]

            with st.form("edit_item"):
                description = st.text_input("Description", item.description)
                quantity = st.number_input("Quantity", min_value=1, value=item.quantity)
                work_center = st.text_input("Work Center", item.work_center or "")
                material_spec = st.text_input("Material Spec", item.material_spec or "")
                change_options = [c.value for c in ChangeType]
                current = (item.change_type or ChangeType.UNCHANGED).value
                change_type = st.selectbox("Change Type", change_options,
                                           index=change_options.index(current))
                if st.form_submit_button("Apply"):
                    set_snapshot(update_item(
                        items, index,
                        description=description,
                        quantity=int(quantity),
                        work_center=work_center or None,
                        material_spec=material_spec or None,
                        change_type=change_type,
                    ))
                    st.rerun()

            b1, b2, b3 = st.columns(3)
            if b1.button("⬆ Move up", disabled=index == 0):
                set_snapshot(move_item(items, index, index - 1))
                st.rerun()
            if b2.button("⬇ Move down", disabled=index == len(items) - 1):
                set_snapshot(move_item(items, index, index + 1))
                st.rerun()
            if b3.button("🗑 Delete"):
                set_snapshot(remove_item(items, index))
                st.rerun()

            with st.expander("Give feedback on this item"):
                field = st.selectbox("Which field is incorrect?", CORRECTABLE_FIELDS)
                corrected = st.text_input("Correct value")
                reasoning = st.text_area("Why?")
                learn = st.checkbox("Let the model learn from this", value=True)
                if st.button("Submit feedback") and corrected:
                    try:
                        client.submit_feedback(
                            st.session_state.conversion_id,
                            [FieldCorrection.for_item(item, field, corrected, reasoning)],
                            should_learn=learn,
                        )
                        st.success("Thanks, feedback submitted.")
                    except ConversionAPIError as e:
                        st.error(f"Failed to submit feedback: {e}")

        with st.expander("➕ Add item"):
            with st.form("add_item"):
                part_number = st.text_input("Part Number")
                new_desc = st.text_input("Description")
                new_level = st.number_input("Level", min_value=0, value=0)
                if st.form_submit_button("Add") and part_number:
                    set_snapshot(insert_item(items, ManufacturingBomItem(
                        part_number=part_number, description=new_desc,
                        level=int(new_level), change_type=ChangeType.ADDED,
                    )))
                    st.rerun()

        c1, c2, c3, c4, c5 = st.columns(5)
        if c1.button("💾 Save", disabled=not st.session_state.dirty):
            try:
                client.save_edits(st.session_state.conversion_id, items)
                st.session_state.dirty = False
                st.success("Changes saved successfully!")
            except ConversionAPIError as e:
                st.error(f"Failed to save changes: {e}")
        if c2.button("↩ Discard", disabled=not st.session_state.dirty):
            load_conversion(st.session_state.conversion_id)
            st.rerun()
        c3.download_button("CSV", to_csv_bytes(items), "bom-export.csv", "text/csv")
        c4.download_button("Excel", to_excel_bytes(items), "bom-export.xlsx",
                           "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
        c5.download_button("PDF", to_pdf_bytes(items), "bom-export.pdf", "application/pdf")

# ==========================================
# 6. GRAPH
# ==========================================
with tab_graph:
    if st.session_state.mbom:
        render_graph(st.session_state.mbom)
    else:
        st.info("No mBOM loaded.")

# ==========================================
# 7. HISTORY
# ==========================================
with tab_history:
    search = st.text_input("🔍 Search by file name or ID", "")
    try:
        records, _ = client.list_history(search=search or None)
    except ConversionAPIError as e:
        st.error(f"Failed to load history: {e}")
        records = []

    if not records:
        st.info("No conversions yet.")
    for record in records:
        col1, col2, col3 = st.columns([4, 1, 1])
        col1.markdown(
            f"**{record.file_name or 'Untitled'}** · ID {record.conversion_id[-8:].upper()} · "
            f"{record.status} · {record.ebom_part_count} → {record.mbom_part_count} parts · "
            f"{round(record.confidence_score)}% confidence"
        )
        if col2.button("Open", key=f"open-{record.conversion_id}"):
            load_conversion(record.conversion_id)
            st.rerun()
        if col3.button("Delete", key=f"del-{record.conversion_id}"):
            try:
                client.delete_conversion(record.conversion_id)
                st.rerun()
            except ConversionAPIError as e:
                st.error(f"Failed to delete: {e}")
