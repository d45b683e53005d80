"""Integration tests for POST /convert with real subprocesses."""
import asyncio
import io
import time

import httpx

from conftest import COPY, FAIL, dir_entries

SVG = b'<svg xmlns="http://www.w3.org/2000/svg"/>'


def _post(client, name: str, data: bytes = SVG):
    return client.post("/convert", files={"aiFile": (name, io.BytesIO(data), "application/octet-stream")})


def test_health(settings_factory, make_client):
    client = make_client(settings_factory())
    assert client.get("/health").json() == {"status": "ok"}


def test_startup_creates_directories(settings_factory, make_client):
    settings = settings_factory()
    make_client(settings)
    assert settings.upload_dir.is_dir()
    assert settings.converted_dir.is_dir()


def test_ai_conversion_returns_svg_attachment_and_cleans_up(settings_factory, make_client):
    settings = settings_factory()
    client = make_client(settings)

    resp = _post(client, "drawing.ai")

    assert resp.status_code == 200
    assert resp.content == SVG
    assert resp.headers["content-type"].startswith("image/svg+xml")
    disposition = resp.headers["content-disposition"]
    assert disposition.startswith("attachment")
    assert ".svg" in disposition
    assert "drawing" not in disposition
    assert dir_entries(settings.upload_dir) == []
    assert dir_entries(settings.converted_dir) == []


def test_extension_match_is_case_insensitive(settings_factory, make_client):
    settings = settings_factory()
    client = make_client(settings)
    resp = _post(client, "LOGO.AI")
    assert resp.status_code == 200
    assert dir_entries(settings.upload_dir) == []


def test_eps_runs_both_stages_and_cleans_up(settings_factory, make_client):
    settings = settings_factory()
    client = make_client(settings)

    resp = _post(client, "figure.eps")

    # Stage 2 copies the intermediate, so the payload proves it existed
    assert resp.status_code == 200
    assert resp.content == SVG
    assert dir_entries(settings.upload_dir) == []
    assert dir_entries(settings.converted_dir) == []


def test_unsupported_extension_returns_500_and_deletes_input(settings_factory, make_client):
    settings = settings_factory()
    client = make_client(settings)

    resp = _post(client, "notes.txt")

    assert resp.status_code == 500
    assert resp.json() == {"message": "Unsupported file type: .txt"}
    assert dir_entries(settings.upload_dir) == []
    assert dir_entries(settings.converted_dir) == []


def test_missing_extension_is_unsupported(settings_factory, make_client):
    client = make_client(settings_factory())
    resp = _post(client, "README")
    assert resp.status_code == 500
    assert resp.json() == {"message": "Unsupported file type: "}


def test_missing_file_field_returns_400(settings_factory, make_client):
    settings = settings_factory()
    client = make_client(settings)

    resp = client.post("/convert", files={"other": ("x.ai", io.BytesIO(SVG), "application/octet-stream")})

    assert resp.status_code == 400
    assert resp.json() == {"message": "Error: No file uploaded."}
    assert dir_entries(settings.upload_dir) == []
    assert dir_entries(settings.converted_dir) == []


def test_text_value_in_file_field_returns_400(settings_factory, make_client):
    settings = settings_factory()
    client = make_client(settings)

    resp = client.post("/convert", data={"aiFile": "not-a-file"})

    assert resp.status_code == 400
    assert resp.json() == {"message": "Error: No file uploaded."}
    assert dir_entries(settings.upload_dir) == []


def test_ai_failure_reports_ai_message(settings_factory, make_client):
    settings = settings_factory(pdf2svg_command=FAIL)
    client = make_client(settings)

    resp = _post(client, "drawing.ai")

    assert resp.status_code == 500
    assert resp.json() == {"message": "AI conversion failed."}
    assert dir_entries(settings.upload_dir) == []
    assert dir_entries(settings.converted_dir) == []


def test_inkscape_failure_reports_inkscape_message(settings_factory, make_client):
    settings = settings_factory(ai_converter="inkscape", inkscape_command=FAIL)
    client = make_client(settings)
    resp = _post(client, "drawing.ai")
    assert resp.status_code == 500
    assert resp.json() == {"message": "Inkscape conversion failed."}


def test_inkscape_export_flag_with_embedded_output(settings_factory, make_client, tmp_path):
    # Mimics `--export-filename={output}` by parsing the flag inside a shell
    command = "sh -c 'cp \"$1\" \"${0#--export-filename=}\"' --export-filename={output} {input}"
    settings = settings_factory(ai_converter="inkscape", inkscape_command=command)
    client = make_client(settings)
    resp = _post(client, "drawing.ai")
    assert resp.status_code == 200
    assert resp.content == SVG


def test_eps_stage1_failure_skips_stage2(settings_factory, make_client, tmp_path):
    marker = tmp_path / "stage2-ran"
    settings = settings_factory(ghostscript_command=FAIL, pdf2svg_command=f"touch {marker} {{output}} {{input}}")
    client = make_client(settings)

    resp = _post(client, "figure.eps")

    assert resp.status_code == 500
    assert resp.json() == {"message": "Ghostscript conversion failed."}
    assert not marker.exists()
    assert dir_entries(settings.upload_dir) == []
    assert dir_entries(settings.converted_dir) == []


def test_eps_stage2_failure_removes_intermediate(settings_factory, make_client):
    settings = settings_factory(pdf2svg_command=FAIL)
    client = make_client(settings)

    resp = _post(client, "figure.eps")

    assert resp.status_code == 500
    assert resp.json() == {"message": "pdf2svg conversion failed."}
    assert dir_entries(settings.upload_dir) == []
    assert dir_entries(settings.converted_dir) == []


def test_partial_output_is_removed_on_failure(settings_factory, make_client):
    # Writes the output, then exits non-zero
    settings = settings_factory(pdf2svg_command="sh -c 'cp \"$0\" \"$1\"; exit 3' {input} {output}")
    client = make_client(settings)
    resp = _post(client, "drawing.ai")
    assert resp.status_code == 500
    assert dir_entries(settings.converted_dir) == []


def test_missing_executable_is_a_conversion_failure(settings_factory, make_client):
    settings = settings_factory(pdf2svg_command="/nonexistent/pdf2svg {input} {output}")
    client = make_client(settings)
    resp = _post(client, "drawing.ai")
    assert resp.status_code == 500
    assert resp.json() == {"message": "AI conversion failed."}
    assert dir_entries(settings.upload_dir) == []


def test_hung_tool_is_killed_after_timeout(settings_factory, make_client):
    # The background sleep is a grandchild that also holds the stderr pipe
    settings = settings_factory(pdf2svg_command="sh -c 'sleep 30 & wait' {input} {output}", tool_timeout_sec=0.2)
    client = make_client(settings)

    started = time.monotonic()
    resp = _post(client, "drawing.ai")

    assert time.monotonic() - started < 5
    assert resp.status_code == 500
    assert resp.json() == {"message": "AI conversion failed."}
    assert dir_entries(settings.upload_dir) == []


def test_oversized_upload_returns_413(settings_factory, make_client):
    settings = settings_factory(max_upload_mb=1)
    client = make_client(settings)

    resp = _post(client, "big.ai", b"x" * (1024 * 1024 + 1))

    assert resp.status_code == 413
    assert resp.json() == {"message": "Upload exceeds 1 MB"}
    assert dir_entries(settings.upload_dir) == []


def test_same_name_uploads_get_distinct_downloads(settings_factory, make_client):
    settings = settings_factory()
    client = make_client(settings)

    first = _post(client, "drawing.ai", b"<svg id='1'/>")
    second = _post(client, "drawing.ai", b"<svg id='2'/>")

    assert first.content == b"<svg id='1'/>"
    assert second.content == b"<svg id='2'/>"
    assert first.headers["content-disposition"] != second.headers["content-disposition"]


def test_cors_allows_any_origin(settings_factory, make_client):
    client = make_client(settings_factory())
    resp = client.options(
        "/convert",
        headers={"Origin": "https://example.org", "Access-Control-Request-Method": "POST"},
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] in {"*", "https://example.org"}


def test_static_front_end_served_at_root(settings_factory, make_client):
    from svg_service.settings import PACKAGE_STATIC_DIR

    client = make_client(settings_factory(static_dir=PACKAGE_STATIC_DIR))
    resp = client.get("/")
    assert resp.status_code == 200
    assert 'name="aiFile"' in resp.text
    assert client.get("/health").json() == {"status": "ok"}


def test_concurrent_same_name_uploads_do_not_collide(settings_factory, tmp_path):
    from svg_service.webapi import create_app

    log = tmp_path / "tool.log"
    command = f"sh -c 'echo start >> {log}; sleep 0.5; echo end >> {log}; cp \"$0\" \"$1\"' {{input}} {{output}}"
    settings = settings_factory(pdf2svg_command=command)
    app = create_app(settings)
    app.state.storage.ensure_dirs()

    async def both():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            return await asyncio.gather(
                client.post("/convert", files={"aiFile": ("drawing.ai", b"<svg id='1'/>", "application/octet-stream")}),
                client.post("/convert", files={"aiFile": ("drawing.ai", b"<svg id='2'/>", "application/octet-stream")}),
            )

    first, second = asyncio.run(both())

    # Both tool runs overlapped
    assert log.read_text().split() == ["start", "start", "end", "end"]
    assert first.status_code == second.status_code == 200
    assert first.content == b"<svg id='1'/>"
    assert second.content == b"<svg id='2'/>"
    assert first.headers["content-disposition"] != second.headers["content-disposition"]
    assert dir_entries(settings.upload_dir) == []
    assert dir_entries(settings.converted_dir) == []
