"""
Recursos Suop - Linha de Comando
================================
Ferramentas para documentos financeiros com renomeacao por IA.

Comandos:
    renomear  Renomeia comprovantes, boletos e notas fiscais
    separar   Separa um PDF em paginas nomeadas pelo vencimento
    codigos   Le linha digitavel e Pix copia e cola
    recortar  Extrai um intervalo de paginas de um PDF

Exemplos:
    python main.py renomear *.pdf --tipo boleto --saida Output
    python main.py separar boletos.pdf
    python main.py codigos boleto.pdf qr.png
    python main.py recortar contrato.pdf --paginas "1-3, 5"
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import config
import pdf_service
from barcode_batch import BarcodeBatch
from batch_queue import BatchQueueEngine
from exceptions import ProcessingError
from logging_config import QueueEventLogger, get_logger, setup_logging
from models import AnalysisStatus, RunState, SourceFile, WorkItem
from renamer import unique_path
from session import RenamerSession
from splitter import SplitterSession

logger = get_logger('cli')

# Quantas pausas por cota o terminal aguarda antes de desistir
MAX_COOLDOWN_ROUNDS = 3


def _load_files(paths: List[str]) -> List[SourceFile]:
    files = []
    for raw in paths:
        path = Path(raw)
        if not path.is_file():
            print(f"  ✗ Arquivo não encontrado: {raw}")
            continue
        files.append(SourceFile.from_path(path))
    return files


async def _wait_cooldowns(engine: BatchQueueEngine) -> None:
    """Sem interface para o botao de tentar novamente: espera e retoma."""
    rounds = 0
    while engine.state is RunState.COOLDOWN and rounds < MAX_COOLDOWN_ROUNDS:
        rounds += 1
        print(f"  ⏸ {config.MSG_QUOTA_PAUSED} Aguardando {engine.cooldown_seconds:.0f}s...")
        await asyncio.sleep(engine.cooldown_seconds + 0.1)
        await engine.retry_queue()


def _print_item(item: WorkItem, name: str) -> None:
    if item.status is AnalysisStatus.COMPLETE:
        print(f"  ✓ {item.original_name} -> {name}")
    elif item.status is AnalysisStatus.WAITING_PASSWORD:
        print(f"  🔒 {item.original_name}: {item.error_message or 'protegido por senha (use --senha)'}")
    elif item.status is AnalysisStatus.ERROR:
        print(f"  ✗ {item.original_name}: {item.error_message}")
    else:
        print(f"  … {item.original_name}: não processado")


# =============================================================================
# COMANDOS
# =============================================================================

async def cmd_rename(args: argparse.Namespace) -> int:
    files = _load_files(args.files)
    if not files:
        return 1

    session = RenamerSession(category=args.tipo, on_event=QueueEventLogger('renomear'))
    await session.add_files(files)
    await _wait_cooldowns(session.engine)

    if args.senha:
        for item in session.store.with_status(AnalysisStatus.WAITING_PASSWORD):
            await session.unlock(item.id, args.senha)
        await _wait_cooldowns(session.engine)

    for item in session.items:
        _print_item(item, session.suggested_name(item))

    saved = await session.save_all(args.saida)
    stats = session.stats()
    print(f"\nProcessados {stats.processed} / {stats.total} - {len(saved)} arquivo(s) em {args.saida}")
    return 0 if stats.success == stats.total else 2


async def cmd_split(args: argparse.Namespace) -> int:
    files = _load_files([args.file])
    if not files:
        return 1

    source = files[0]
    if source.is_pdf and args.senha and pdf_service.is_encrypted(source):
        source = await asyncio.to_thread(pdf_service.unlock_pdf, source, args.senha)

    splitter = SplitterSession(on_event=QueueEventLogger('separar'))
    await splitter.load(source)
    await _wait_cooldowns(splitter.engine)

    for item in splitter.items:
        _print_item(item, splitter.final_name(item))

    saved = await splitter.save_all(args.saida)
    print(f"\n{len(saved)} página(s) salvas em {args.saida}")
    return 0


async def cmd_codes(args: argparse.Namespace) -> int:
    files = _load_files(args.files)
    if not files:
        return 1

    batch = BarcodeBatch(on_event=QueueEventLogger('codigos'))
    await batch.add_files(files)
    await _wait_cooldowns(batch.engine)

    for item in batch.items:
        print(f"\n{item.original_name}")
        if item.status is not AnalysisStatus.COMPLETE:
            print(f"  ✗ {item.error_message or 'não processado'}")
            continue
        codes = item.extracted
        print(f"  Linha digitável: {codes.bar_line or '-'}")
        print(f"  Pix copia e cola: {codes.pix_payload or '-'}")
    return 0 if batch.results() else 2


def cmd_cut(args: argparse.Namespace) -> int:
    files = _load_files([args.file])
    if not files:
        return 1

    source = files[0]
    if args.senha and pdf_service.is_encrypted(source):
        source = pdf_service.unlock_pdf(source, args.senha)

    cut = pdf_service.cut_pdf(source, args.paginas)
    output_dir = Path(args.saida)
    output_dir.mkdir(parents=True, exist_ok=True)
    target = unique_path(output_dir, cut.name)
    target.write_bytes(cut.data)
    print(f"  ✓ {target}")
    return 0


# =============================================================================
# ENTRADA
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='suop',
        description='Recursos Suop - ferramentas para documentos financeiros'
    )
    parser.add_argument('--debug', action='store_true', help='Log detalhado')
    sub = parser.add_subparsers(dest='command', required=True)

    rename = sub.add_parser('renomear', help='Renomear documentos com IA')
    rename.add_argument('files', nargs='+')
    rename.add_argument('--tipo', '-t', default=config.DEFAULT_CATEGORY,
                        help=f"{', '.join(config.STANDARD_CATEGORIES)} ou um tipo personalizado")
    rename.add_argument('--saida', '-o', default=str(config.OUTPUT_DIR))
    rename.add_argument('--senha', '-p', default=None, help='Senha dos PDFs protegidos')

    split = sub.add_parser('separar', help='Separar PDF em páginas')
    split.add_argument('file')
    split.add_argument('--saida', '-o', default=str(config.OUTPUT_DIR))
    split.add_argument('--senha', '-p', default=None)

    codes = sub.add_parser('codigos', help='Ler linha digitável e Pix')
    codes.add_argument('files', nargs='+')

    cut = sub.add_parser('recortar', help='Extrair páginas de um PDF')
    cut.add_argument('file')
    cut.add_argument('--paginas', '-r', required=True, help='Ex: "1-3, 5"')
    cut.add_argument('--saida', '-o', default=str(config.OUTPUT_DIR))
    cut.add_argument('--senha', '-p', default=None)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(
        log_level=logging.DEBUG if args.debug else logging.INFO,
        enable_console=args.debug,
        enable_file=True
    )

    try:
        if args.command == 'renomear':
            return asyncio.run(cmd_rename(args))
        if args.command == 'separar':
            return asyncio.run(cmd_split(args))
        if args.command == 'codigos':
            return asyncio.run(cmd_codes(args))
        return cmd_cut(args)
    except (ProcessingError, ValueError) as e:
        logger.error(f"{args.command}: {e}")
        print(f"ERRO: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
