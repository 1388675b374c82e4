
import logging
import os
import sys

import pytest

# Ensure we can import from parent directory
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
import main


@pytest.fixture(autouse=True)
def logs_in_tmp(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "LOGS_DIR", tmp_path / "logs")
    yield
    for name in ('suop', 'suop.gemini', 'suop.queue'):
        for handler in logging.getLogger(name).handlers:
            handler.close()
        logging.getLogger(name).handlers.clear()


def test_parser_defaults():
    args = main.build_parser().parse_args(["renomear", "a.pdf", "b.pdf"])
    assert args.command == "renomear"
    assert args.files == ["a.pdf", "b.pdf"]
    assert args.tipo == config.DEFAULT_CATEGORY
    assert args.senha is None


def test_cut_command(tmp_path, pdf_factory):
    source = tmp_path / "contrato.pdf"
    source.write_bytes(pdf_factory(pages=3).data)
    output = tmp_path / "saida"

    code = main.main(["recortar", str(source), "--paginas", "2-3", "--saida", str(output)])

    assert code == 0
    assert (output / "contrato_Recorte.pdf").exists()
    assert (tmp_path / "logs").is_dir()


def test_cut_command_reports_bad_range(tmp_path, pdf_factory, capsys):
    source = tmp_path / "contrato.pdf"
    source.write_bytes(pdf_factory(pages=2).data)

    code = main.main(["recortar", str(source), "--paginas", "5", "--saida", str(tmp_path)])

    assert code == 1
    assert "fora do limite (1-2)" in capsys.readouterr().out


def test_missing_file(tmp_path):
    code = main.main(["recortar", str(tmp_path / "nao_existe.pdf"), "--paginas", "1"])
    assert code == 1
