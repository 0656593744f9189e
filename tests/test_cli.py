from pathlib import Path

from typer.testing import CliRunner

from doc_relay import cli
from doc_relay.conversion import ConversionResult, ConversionService, UploadFailed

runner = CliRunner()


class Storage:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    def upload(self, data: bytes, filename: str) -> str:
        if self.error:
            raise self.error
        return f"http://storage/files/{filename}"


class Engine:
    def submit(self, descriptor):
        return ConversionResult(end_convert=True, file_url="http://engine/out", percent=100)

    def download(self, url: str) -> bytes:
        return b"converted!"


def test_convert_writes_output_next_to_input(tmp_path: Path, monkeypatch) -> None:
    captured: dict[str, object] = {}

    def fake_build(engine_url, secret, storage_url, timeout):
        captured.update(engine_url=engine_url, secret=secret, storage_url=storage_url)
        return ConversionService(Storage(), Engine(), secret=secret)

    monkeypatch.setattr(cli, "build_service", fake_build)
    monkeypatch.delenv("DOC_RELAY_JWT_SECRET", raising=False)
    monkeypatch.delenv("DOC_RELAY_STORAGE_URL", raising=False)
    source = tmp_path / "letter.docx"
    source.write_bytes(b"docx")

    result = runner.invoke(cli.app, ["convert", str(source), "http://oo:8080", "s3cret"])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "letter.pdf").read_bytes() == b"converted!"
    assert captured == {"engine_url": "http://oo:8080", "secret": "s3cret", "storage_url": "http://localhost:8000"}


def test_convert_pdf_defaults_to_docx(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(cli, "build_service", lambda *args: ConversionService(Storage(), Engine()))
    source = tmp_path / "scan.pdf"
    source.write_bytes(b"%PDF")
    result = runner.invoke(cli.app, ["convert", str(source)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "scan.docx").exists()


def test_convert_missing_input_exits_nonzero(tmp_path: Path) -> None:
    result = runner.invoke(cli.app, ["convert", str(tmp_path / "missing.docx")])
    assert result.exit_code == 1
    assert "Input file not found" in result.output


def test_convert_failure_writes_no_output(tmp_path: Path, monkeypatch) -> None:
    failing = UploadFailed("File upload failed: refused")
    failing.__cause__ = ConnectionError("refused")
    monkeypatch.setattr(cli, "build_service", lambda *args: ConversionService(Storage(error=failing), Engine()))
    source = tmp_path / "sheet.xlsx"
    source.write_bytes(b"xlsx")

    result = runner.invoke(cli.app, ["convert", str(source), "--to", "ods"])

    assert result.exit_code == 1
    assert "Error: File upload failed" in result.output
    assert "Inner error" in result.output
    assert not (tmp_path / "sheet.ods").exists()


class ClosingStorage(Storage):
    def __init__(self) -> None:
        super().__init__()
        self.closed = False

    def close(self) -> None:
        self.closed = True


def test_unwritable_output_reports_error_and_closes_gateways(tmp_path: Path, monkeypatch) -> None:
    storage = ClosingStorage()
    monkeypatch.setattr(cli, "build_service", lambda *args: ConversionService(storage, Engine()))
    source = tmp_path / "memo.docx"
    source.write_bytes(b"docx")
    (tmp_path / "memo.pdf").mkdir()

    result = runner.invoke(cli.app, ["convert", str(source)])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert storage.closed
