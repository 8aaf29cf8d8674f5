#!/usr/bin/env python3
from __future__ import annotations

import io
import re
import tempfile
import zipfile
from pathlib import Path
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import requests
import streamlit as st

from obfusheet.errors import ObfusheetError
from obfusheet.loader import ALL_FORMATS
from obfusheet.obfuscate import (
    NUMBER_POLICIES,
    STRING_POLICIES,
    ObfuscationOptions,
    build_structured_summary,
    make_rng,
    obfuscate_file,
)

MAX_REMOTE_FILE_MB = 100
MAX_REMOTE_FILE_BYTES = MAX_REMOTE_FILE_MB * 1024 * 1024
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def ensure_state() -> None:
    defaults = {
        "result": None,
        "error": None,
    }
    for key, value in defaults.items():
        st.session_state.setdefault(key, value)


def normalize_public_url(raw_url: str) -> str:
    parsed = urlparse(raw_url.strip())
    if parsed.scheme not in {"http", "https"}:
        raise ValueError("URL must start with http:// or https://")

    host = parsed.netloc.lower()
    path = parsed.path
    query = parse_qs(parsed.query, keep_blank_values=True)

    if host == "github.com" and "/blob/" in path:
        owner_repo, blob_path = path.lstrip("/").split("/blob/", 1)
        owner, repo = owner_repo.split("/", 1)
        branch, file_path = blob_path.split("/", 1)
        return f"https://raw.githubusercontent.com/{owner}/{repo}/{branch}/{file_path}"

    if "dropbox.com" in host:
        query["dl"] = ["1"]
        return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))

    if host in {"drive.google.com", "docs.google.com"}:
        sheet_match = re.search(r"/spreadsheets/d/([^/]+)", path)
        if sheet_match:
            return f"https://docs.google.com/spreadsheets/d/{sheet_match.group(1)}/export?format=xlsx"
        match = re.search(r"/file/d/([^/]+)", path)
        if match:
            return f"https://drive.google.com/uc?export=download&id={match.group(1)}"

    if host.endswith("1drv.ms") or "onedrive.live.com" in host:
        query["download"] = ["1"]
        return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))

    return raw_url.strip()


def remote_filename(raw_url: str, response: requests.Response) -> str:
    content_disposition = response.headers.get("content-disposition", "")
    match = re.search(r'filename="([^"]+)"|filename=([^;]+)', content_disposition, re.I)
    if match:
        for group in match.groups():
            if group:
                return Path(group.strip().strip('"')).name
    redirected = response.url or raw_url
    return Path(urlparse(redirected).path).name or "downloaded_file"


def infer_extension(raw_url: str, response: requests.Response, filename: str, content: bytes) -> str:
    ext = Path(filename).suffix.lower()
    if ext in ALL_FORMATS:
        return ext

    content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
    content_type_map = {
        XLSX_MIME: ".xlsx",
        "application/vnd.ms-excel.sheet.macroenabled.12": ".xlsm",
        "application/vnd.ms-excel": ".xls",
        "application/vnd.oasis.opendocument.spreadsheet": ".ods",
        "text/csv": ".csv",
        "text/tab-separated-values": ".tsv",
    }
    if content_type in content_type_map:
        return content_type_map[content_type]

    if "docs.google.com" in urlparse(raw_url).netloc.lower():
        return ".xlsx"

    if content.startswith(b"PK"):
        try:
            with zipfile.ZipFile(io.BytesIO(content)) as zf:
                names = set(zf.namelist())
        except zipfile.BadZipFile:
            names = set()
        if "xl/vbaProject.bin" in names:
            return ".xlsm"
        if "xl/workbook.xml" in names:
            return ".xlsx"
        if "mimetype" in names:
            return ".ods"

    if content[:8] == b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1":
        return ".xls"
    return ext or ".csv"


def fetch_remote_source(raw_url: str, folder: Path) -> Path:
    url = normalize_public_url(raw_url)
    response = requests.get(url, timeout=60, allow_redirects=True, stream=True)
    try:
        response.raise_for_status()
        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > MAX_REMOTE_FILE_BYTES:
            raise ValueError(f"Remote file is larger than {MAX_REMOTE_FILE_MB} MB.")

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
    finally:
        response.close()

    filename = remote_filename(raw_url, response)
    ext = infer_extension(raw_url, response, filename, content)
    if ext not in ALL_FORMATS:
        raise ValueError(f"Unsupported remote file type: {ext or '[missing extension]'}")
    if Path(filename).suffix.lower() != ext:
        filename = f"{Path(filename).stem or 'downloaded_file'}{ext}"

    target = folder / filename
    target.write_bytes(content)
    return target


def zip_directory(folder: Path) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(folder.glob("*.csv")):
            archive.write(path, arcname=path.name)
    return buffer.getvalue()


def run_obfuscation(
    *,
    upload,
    raw_url: str,
    options: ObfuscationOptions,
    as_csv: bool,
    seed: Optional[int],
) -> dict:
    with tempfile.TemporaryDirectory() as tmpdir:
        folder = Path(tmpdir)
        if upload is not None:
            input_path = folder / Path(upload.name).name
            input_path.write_bytes(upload.getvalue())
        else:
            input_path = fetch_remote_source(raw_url, folder)

        stem = input_path.stem
        if as_csv:
            output_path = folder / f"{stem}-obfuscated"
            output_format = "csv"
        else:
            output_path = folder / f"{stem}-obfuscated.xlsx"
            output_format = "xlsx"

        run = obfuscate_file(input_path, output_path, options, output_format=output_format, rng=make_rng(seed))
        summary = build_structured_summary(
            input_path=Path(input_path.name),
            output_path=Path(output_path.name),
            output_format=output_format,
            options=options,
            run=run,
            seed=seed,
        )
        if as_csv:
            return {
                "summary": summary,
                "download_bytes": zip_directory(output_path),
                "download_name": f"{output_path.name}.zip",
                "download_mime": "application/zip",
            }
        return {
            "summary": summary,
            "download_bytes": output_path.read_bytes(),
            "download_name": output_path.name,
            "download_mime": XLSX_MIME,
        }


def render_result(result: dict) -> None:
    summary = result["summary"]
    stats = summary.get("stats", {})
    st.subheader("Result")
    metrics = st.columns(3)
    metrics[0].metric("Sheets", stats.get("sheets_processed", 0))
    metrics[1].metric("Strings replaced", stats.get("strings_replaced", 0))
    metrics[2].metric("Numbers replaced", stats.get("numbers_replaced", 0))
    for warning in summary.get("warnings", []):
        st.warning(warning)
    with st.expander("Run summary"):
        st.json(summary)
    st.download_button(
        "Download obfuscated file",
        data=result["download_bytes"],
        file_name=result["download_name"],
        mime=result["download_mime"],
        width="stretch",
    )


def main() -> None:
    st.set_page_config(page_title="obfusheet", page_icon="🫥", layout="centered")
    ensure_state()

    st.title("obfusheet")
    st.caption("Replace spreadsheet values with look-alike noise before sharing. Everything runs locally.")

    upload = st.file_uploader("Upload a spreadsheet", type=[ext.lstrip(".") for ext in sorted(ALL_FORMATS)])
    raw_url = st.text_input("…or a public file URL", placeholder="https://")
    st.caption(f"Public URL mode makes an outbound request and rejects files above {MAX_REMOTE_FILE_MB} MB.")

    left, right = st.columns(2)
    with left:
        preserve_headers = st.checkbox("Preserve headers (first row)")
        preserve_formulas = st.checkbox("Preserve formulas")
        preserve_numbers = st.checkbox("Preserve numbers")
        shuffle_rows = st.checkbox("Shuffle rows")
        shuffle_columns = st.checkbox("Shuffle columns")
    with right:
        string_policy = st.selectbox("String replacement", STRING_POLICIES, index=0)
        number_policy = st.selectbox("Number replacement", NUMBER_POLICIES, index=0, disabled=preserve_numbers)
        as_csv = st.radio("Output", ["XLSX workbook", "CSV per sheet (zip)"], horizontal=True) != "XLSX workbook"
        seed_text = st.text_input("Seed (optional)")

    submit = st.button("Obfuscate", type="primary", width="stretch", disabled=upload is None and not raw_url.strip())
    if submit:
        try:
            seed = int(seed_text) if seed_text.strip() else None
            options = ObfuscationOptions(
                preserve_headers=preserve_headers,
                preserve_formulas=preserve_formulas,
                preserve_numbers=preserve_numbers,
                shuffle_rows=shuffle_rows,
                shuffle_columns=shuffle_columns,
                string_policy=string_policy,
                number_policy="none" if preserve_numbers else number_policy,
            )
            st.session_state["result"] = run_obfuscation(
                upload=upload,
                raw_url=raw_url,
                options=options,
                as_csv=as_csv,
                seed=seed,
            )
            st.session_state["error"] = None
        except (ObfusheetError, ValueError, requests.RequestException) as exc:
            st.session_state["result"] = None
            st.session_state["error"] = str(exc)

    if st.session_state["error"]:
        st.error(st.session_state["error"])
    if st.session_state["result"]:
        render_result(st.session_state["result"])


if __name__ == "__main__":
    main()
