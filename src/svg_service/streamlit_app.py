import os
import requests
import streamlit as st

API_BASE = os.getenv("SVG_SERVICE_API_BASE", os.getenv("API_BASE", "http://localhost:3000")).rstrip("/")


class ConvertRequestError(Exception):
    pass


def _reset_state():
    for key in ["result_svg", "result_name", "error"]:
        if key in st.session_state:
            del st.session_state[key]
    # Bump the uploader key to clear any previously uploaded file widget state
    if "upload_key" in st.session_state:
        st.session_state["upload_key"] += 1
    else:
        st.session_state["upload_key"] = 1


def _filename_from_disposition(header: str | None, fallback: str) -> str:
    if not header or "filename=" not in header:
        return fallback
    name = header.split("filename=", 1)[1].split(";", 1)[0].strip().strip('"')
    return name or fallback


def _convert(name: str, data: bytes, content_type: str | None = None) -> tuple[str, bytes]:
    """Post one file to /convert and return (download name, SVG bytes)."""
    try:
        files = {"aiFile": (name, data, content_type or "application/octet-stream")}
        resp = requests.post(f"{API_BASE}/convert", files=files, timeout=300)
    except requests.RequestException as e:
        raise ConvertRequestError(f"Failed to connect to API: {e}") from e
    if resp.status_code != 200:
        try:
            message = str(resp.json().get("message", resp.text))
        except ValueError:
            message = resp.text
        raise ConvertRequestError(f"Conversion failed: {resp.status_code} {message}")
    stem = name.rsplit(".", 1)[0] if "." in name else name
    download_name = _filename_from_disposition(resp.headers.get("content-disposition"), f"{stem}.svg")
    return download_name, resp.content


def main() -> None:
    st.set_page_config(page_title="SVG Conversion Service", page_icon="🖋️", layout="centered")
    st.title("🖋️ AI / EPS to SVG")
    st.caption(f"API base: {API_BASE}")

    if st.button("Restart", type="secondary"):
        _reset_state()
        st.rerun()

    if "upload_key" not in st.session_state:
        st.session_state["upload_key"] = 0
    uploaded = st.file_uploader(
        "Upload an Illustrator or EPS file",
        type=["ai", "eps"],
        key=f"uploader-{st.session_state['upload_key']}"
    )

    if uploaded and "result_svg" not in st.session_state and st.button("Convert", type="primary"):
        with st.spinner("Converting..."):
            try:
                name, svg = _convert(uploaded.name, uploaded.getvalue(), uploaded.type)
            except ConvertRequestError as e:
                st.session_state["error"] = str(e)
            else:
                st.session_state["result_name"] = name
                st.session_state["result_svg"] = svg
                st.session_state.pop("error", None)

    if "result_svg" in st.session_state:
        st.success("Conversion complete!")
        st.download_button(
            label="Download SVG",
            data=st.session_state["result_svg"],
            file_name=st.session_state["result_name"],
            mime="image/svg+xml",
        )
        with st.expander("Preview"):
            st.image(st.session_state["result_svg"].decode("utf-8", errors="replace"))

    if err := st.session_state.get("error"):
        st.error(err)


if __name__ == "__main__":
    main()
