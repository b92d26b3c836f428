#!/usr/bin/env python3
from __future__ import annotations

import io
import re
import sys
import zipfile
from datetime import date
from pathlib import Path
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import pandas as pd
import requests
import streamlit as st

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from importflow.aggregate import status_shares, top_delayed_suppliers  # noqa: E402
from importflow.config import load_settings  # noqa: E402
from importflow.loader import ALL_FORMATS, SpreadsheetDecodeError  # noqa: E402
from importflow.query import RecordQuery, run_query, table_counts, timeline_bar, unique_suppliers  # noqa: E402
from importflow.records import ImportRecord, ImportStatus  # noqa: E402
from importflow.session import VIEW_ALL, VIEW_EXCLUDED, VIEW_HOME, ImportSession, view_title  # noqa: E402
from importflow.store import OverrideStore  # noqa: E402

MAX_REMOTE_FILE_MB = 50
MAX_REMOTE_FILE_BYTES = MAX_REMOTE_FILE_MB * 1024 * 1024
STATUS_LABELS = {
    ImportStatus.ATRASADO: "Atrasado",
    ImportStatus.CRITICO: "Crítico",
    ImportStatus.ALERTA: "Alerta",
    ImportStatus.PRODUCAO: "Produção",
    ImportStatus.EMBARCADO: "Embarcado",
    ImportStatus.NACIONAL: "Nacional",
}


def normalize_public_url(raw_url: str) -> str:
    parsed = urlparse(raw_url.strip())
    if not parsed.scheme:
        raise ValueError("URL must start with http:// or https://")

    host = parsed.netloc.lower()
    path = parsed.path
    query = parse_qs(parsed.query, keep_blank_values=True)

    if host == "github.com" and "/blob/" in path:
        owner_repo, blob_path = path.lstrip("/").split("/blob/", 1)
        return f"https://raw.githubusercontent.com/{owner_repo}/{blob_path}"

    if "dropbox.com" in host:
        query["dl"] = ["1"]
        return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))

    if host in {"drive.google.com", "docs.google.com"}:
        sheet_match = re.search(r"/spreadsheets/d/([^/]+)", path)
        if sheet_match:
            gid = query.get("gid", ["0"])[0]
            return (
                f"https://docs.google.com/spreadsheets/d/{sheet_match.group(1)}/export"
                f"?format=xlsx&gid={gid}"
            )
        match = re.search(r"/file/d/([^/]+)", path)
        if match:
            return f"https://drive.google.com/uc?export=download&id={match.group(1)}"

    if host.endswith("1drv.ms") or "onedrive.live.com" in host:
        query["download"] = ["1"]
        return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))

    return raw_url.strip()


def infer_extension(raw_url: str, content_type: str, content: bytes) -> str:
    ext = Path(urlparse(raw_url).path).suffix.lower()
    if ext in ALL_FORMATS:
        return ext

    content_type_map = {
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
        "application/vnd.ms-excel": ".xls",
        "application/vnd.oasis.opendocument.spreadsheet": ".ods",
        "text/csv": ".csv",
    }
    content_type = content_type.split(";")[0].strip().lower()
    if content_type in content_type_map:
        return content_type_map[content_type]

    if content.startswith(b"PK"):
        try:
            with zipfile.ZipFile(io.BytesIO(content)) as zf:
                names = set(zf.namelist())
        except zipfile.BadZipFile:
            names = set()
        if "xl/workbook.xml" in names:
            return ".xlsx"
    if content[:8] == b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1":
        return ".xls"
    return ext


def fetch_remote_workbook(raw_url: str) -> tuple[str, bytes]:
    url = normalize_public_url(raw_url)
    response = requests.get(url, timeout=60, allow_redirects=True, stream=True)
    try:
        response.raise_for_status()
        chunks: list[bytes] = []
        downloaded = 0
        for chunk in response.iter_content(chunk_size=1024 * 1024):
            if not chunk:
                continue
            downloaded += len(chunk)
            if downloaded > MAX_REMOTE_FILE_BYTES:
                raise ValueError(f"Remote file is larger than {MAX_REMOTE_FILE_MB} MB.")
            chunks.append(chunk)
        content = b"".join(chunks)
        content_type = response.headers.get("content-type", "")
    finally:
        response.close()

    ext = infer_extension(url, content_type, content)
    if ext not in ALL_FORMATS:
        raise ValueError(f"Unsupported remote file type: {ext or '[missing extension]'}")
    stem = Path(urlparse(raw_url).path).stem or "planilha"
    return f"{stem}{ext}", content


def records_frame(records: list[ImportRecord]) -> pd.DataFrame:
    rows = []
    for record in records:
        bar = timeline_bar(record.days_until_need)
        rows.append(
            {
                "ID": record.identity,
                "Status": STATUS_LABELS.get(record.status, record.status.value),
                "SC": record.sc_number or "",
                "PO": record.po_number,
                "PC": record.pc_number,
                "Fornecedor": record.supplier,
                "Produto": record.product,
                "Volume": str(record.volume),
                "Necess. SC": record.request_need_date.strftime("%d/%m/%Y") if record.request_need_date else "",
                "Necess. PC": record.contract_need_date.strftime("%d/%m/%Y"),
                "Dias": record.days_until_need,
                "Prazo": round(bar.fraction * 100),
                "Embarque": record.shipped_at.strftime("%d/%m/%Y %H:%M") if record.shipped_at else "",
            }
        )
    return pd.DataFrame(rows)


@st.cache_resource(show_spinner=False)
def load_store(store_dir: str) -> OverrideStore:
    return OverrideStore.at_directory(store_dir)


def ensure_state() -> ImportSession:
    if "session" not in st.session_state:
        settings = load_settings()
        store = load_store(str(settings.store_dir))
        st.session_state["session"] = ImportSession(store, today=settings.today)
    st.session_state.setdefault("view", VIEW_HOME)
    return st.session_state["session"]


def import_payload(session: ImportSession, name: str, payload: bytes) -> None:
    try:
        session.import_file(payload, filename=name)
    except (SpreadsheetDecodeError, ImportError) as exc:
        st.error(f"Erro ao processar planilha. Verifique o formato. ({exc})")
        return
    st.session_state["view"] = VIEW_HOME


def render_sidebar(session: ImportSession) -> None:
    counts = session.sidebar_counts()
    st.sidebar.header("ImportFlow")
    options = [VIEW_HOME, VIEW_ALL] + [status.value for status in ImportStatus] + [VIEW_EXCLUDED]
    labels = {
        VIEW_HOME: "Visão Geral",
        VIEW_ALL: f"Todos ({counts['total_imported'] + counts['total_national']})",
        VIEW_EXCLUDED: f"Excluídos ({counts['total_excluded']})",
    }
    for status in ImportStatus:
        labels[status.value] = f"{STATUS_LABELS[status]} ({counts[status.value]})"
    st.sidebar.radio("Visão", options, key="view", format_func=lambda option: labels[option])


def render_home(session: ImportSession) -> None:
    stats = session.stats()
    shares = status_shares(stats)
    st.subheader("Visão Geral")
    cols = st.columns(5)
    for col, status in zip(cols, (ImportStatus.ATRASADO, ImportStatus.CRITICO, ImportStatus.ALERTA, ImportStatus.PRODUCAO, ImportStatus.EMBARCADO)):
        col.metric(STATUS_LABELS[status], stats.count_for(status), f"{shares[status.value]}%", delta_color="off")
    left, right = st.columns(2)
    left.metric("Follow-up necessário", stats.follow_up_needed)
    right.metric("Itens nacionais", stats.total_national)

    delayed = top_delayed_suppliers(session.records)
    if delayed:
        st.markdown("**Fornecedores com mais atrasos**")
        st.bar_chart(pd.DataFrame(delayed, columns=["Fornecedor", "Atrasados"]).set_index("Fornecedor"))


def render_table(session: ImportSession, view: str) -> None:
    records = session.records_for_view(view)
    st.subheader(view_title(view))

    with st.expander("Filtros", expanded=True):
        text = st.text_input("Busca global")
        left, middle, right = st.columns(3)
        supplier = left.selectbox("Fornecedor", [""] + unique_suppliers(records))
        product = middle.text_input("Produto")
        status = right.selectbox("Status", [""] + [status.value for status in ImportStatus])
        start, end = st.columns(2)
        date_from = start.date_input("Necessidade de", value=None)
        date_to = end.date_input("Necessidade até", value=None)

    query = RecordQuery(
        text=text,
        supplier=supplier,
        product=product,
        status=status or None,
        need_date_from=date_from if isinstance(date_from, date) else None,
        need_date_to=date_to if isinstance(date_to, date) else None,
    )
    visible = run_query(records, query)
    counts = table_counts(visible)
    st.caption(
        " · ".join(
            f"{STATUS_LABELS[status]}: {counts[status.value]}"
            for status in (ImportStatus.ATRASADO, ImportStatus.CRITICO, ImportStatus.ALERTA, ImportStatus.PRODUCAO, ImportStatus.EMBARCADO)
        )
    )
    if not visible:
        st.info("Nenhum item encontrado.")
        return
    st.dataframe(
        records_frame(visible),
        hide_index=True,
        column_config={"Prazo": st.column_config.ProgressColumn("Prazo", min_value=0, max_value=100, format="%d%%")},
    )

    identity = st.selectbox("Item", [record.identity for record in visible])
    record = session.find(identity)
    if record is None:
        return
    actions = st.columns(2)
    if view == VIEW_EXCLUDED:
        if actions[0].button("Restaurar"):
            session.restore(identity)
            st.rerun()
        return
    if record.status is ImportStatus.EMBARCADO:
        if actions[0].button("Desfazer embarque"):
            session.unmark_shipped(identity)
            st.rerun()
    elif not record.is_national:
        if actions[0].button("Marcar embarcado"):
            session.mark_shipped(identity)
            st.rerun()
    if actions[1].button("Excluir"):
        session.exclude(identity)
        st.rerun()


def main() -> None:
    st.set_page_config(page_title="ImportFlow", page_icon="🚢", layout="wide")
    session = ensure_state()

    upload_col, url_col = st.columns(2)
    uploaded = upload_col.file_uploader("Importar Excel", type=[ext.lstrip(".") for ext in sorted(ALL_FORMATS)])
    if uploaded is not None and uploaded.file_id != st.session_state.get("uploaded_id"):
        st.session_state["uploaded_id"] = uploaded.file_id
        import_payload(session, uploaded.name, uploaded.getvalue())
    public_url = url_col.text_input("Ou URL pública da planilha")
    if url_col.button("Importar URL") and public_url:
        try:
            name, payload = fetch_remote_workbook(public_url)
        except (requests.RequestException, ValueError) as exc:
            st.error(f"Não foi possível baixar a planilha: {exc}")
        else:
            import_payload(session, name, payload)

    for warning in session.warnings:
        st.warning(warning)

    if not session.records:
        st.info("Para começar, importe sua planilha de controle de importação. Colunas necessárias: NUMERO_PO, NECESS_PC")
        return

    render_sidebar(session)
    view = st.session_state["view"]
    if view == VIEW_HOME:
        render_home(session)
    else:
        render_table(session, view)


if __name__ == "__main__":
    main()
