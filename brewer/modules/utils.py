# brewer/modules/utils.py

import os
import shlex
import shutil
import subprocess
import sys
from typing import List, Optional, Sequence


class PassthroughError(Exception):
    pass


def ensure_dir(path):
    """
    Cria diretório se não existir.
    """
    os.makedirs(path, exist_ok=True)
    return path


def list_subdirs(path):
    """
    Retorna lista ordenada de subdiretórios de um diretório.
    """
    if not os.path.isdir(path):
        return []
    return sorted(d for d in os.listdir(path) if os.path.isdir(os.path.join(path, d)))


def run_passthrough(cmd: Sequence[str], cwd: Optional[str] = None) -> int:
    """
    Executa um processo externo herdando stdin/stdout/stderr, espera o fim e
    devolve o status de saída dele.
    """
    try:
        res = subprocess.run(list(cmd), cwd=cwd)
    except FileNotFoundError:
        raise PassthroughError(f"Command not found: {cmd[0]}")
    return res.returncode


def opener_command() -> List[str]:
    if sys.platform == "darwin":
        return ["open"]
    for candidate in ("xdg-open", "gio"):
        if shutil.which(candidate):
            return [candidate, "open"] if candidate == "gio" else [candidate]
    raise PassthroughError("No URL opener found (install xdg-utils)")


def open_url(url: str) -> int:
    return run_passthrough(opener_command() + [url])


def open_in_editor(editor: str, paths: Sequence[str]) -> int:
    return run_passthrough(shlex.split(editor) + list(paths))


def probe_version(cmd: Sequence[str]) -> Optional[str]:
    """
    Roda `cmd` e devolve a primeira linha não vazia da saída, ou None se o
    programa não existir ou falhar.
    """
    if not shutil.which(cmd[0]):
        return None
    try:
        res = subprocess.run(list(cmd), stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                             text=True, timeout=10)
    except (OSError, subprocess.TimeoutExpired):
        return None
    if res.returncode != 0:
        return None
    for line in res.stdout.splitlines():
        if line.strip():
            return line.strip()
    return None
