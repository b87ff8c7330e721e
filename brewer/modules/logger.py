# brewer/modules/logger.py
"""
Logger do brewer.

- Mensagens de diagnóstico vão para stderr (ou para o stream informado),
  nunca para a saída dos comandos.
- Nível vem do Settings: --debug força debug, --verbose abaixa até info.
- Arquivo de log opcional (log_file) recebe todos os níveis e é rotacionado
  ao passar de MAX_LOG_SIZE_KB.
"""

import datetime
import json
import os
import sys
import threading
from typing import Optional

from brewer.modules.config import Settings

MAX_LOG_SIZE_KB = 1024


class Logger:
    LEVELS = {
        "debug": 10,
        "info": 20,
        "success": 25,
        "warning": 30,
        "error": 40,
    }

    LOG_COLORS = {
        "DEBUG": "\033[90m",    # Cinza
        "INFO": "\033[94m",     # Azul
        "SUCCESS": "\033[92m",  # Verde
        "WARNING": "\033[93m",  # Amarelo
        "ERROR": "\033[91m",    # Vermelho
        "RESET": "\033[0m"
    }

    def __init__(self, name="brewer", settings: Optional[Settings] = None, stream=None):
        settings = settings or Settings()
        self.name = name
        self.stream = stream
        self.color_output = settings.color_output
        self.json_lines = settings.log_format == "json"
        self.min_level = self._level_for(settings)
        self.log_file = settings.log_file
        self._lock = threading.Lock()
        if self.log_file and not self._prepare_file(self.log_file):
            self.log_file = None

    def _level_for(self, settings: Settings) -> int:
        if settings.debug:
            return self.LEVELS["debug"]
        level = self.LEVELS.get(settings.log_level, self.LEVELS["warning"])
        if settings.verbose:
            level = min(level, self.LEVELS["info"])
        return level

    def _prepare_file(self, path) -> bool:
        dirpath = os.path.dirname(path)
        if dirpath:
            try:
                os.makedirs(dirpath, exist_ok=True)
            except OSError as e:
                self._emit(f"Logger: failed to create log directory {dirpath}: {e}")
                return False
        return True

    def _emit(self, text):
        print(text, file=self.stream or sys.stderr)

    # -----------------------
    # Formatting
    # -----------------------
    def _render(self, level, message):
        timestamp = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        if self.json_lines:
            return json.dumps({"timestamp": timestamp, "logger": self.name,
                               "level": level, "message": message})
        return f"[{timestamp}] [{self.name}] [{level}] {message}"

    # -----------------------
    # Sinks
    # -----------------------
    def _rotate(self):
        if os.path.exists(self.log_file) and os.path.getsize(self.log_file) > MAX_LOG_SIZE_KB * 1024:
            try:
                os.replace(self.log_file, self.log_file + ".1")
            except OSError as e:
                self._emit(f"Logger: failed to rotate {self.log_file}: {e}")

    def _to_file(self, line):
        self._rotate()
        try:
            with open(self.log_file, "a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except OSError as e:
            self._emit(f"Logger: failed to write {self.log_file}: {e}")

    def _to_console(self, line, level):
        if self.color_output and not self.json_lines:
            line = f"{self.LOG_COLORS.get(level, '')}{line}{self.LOG_COLORS['RESET']}"
        self._emit(line)

    def log(self, level, message):
        level = level.upper()
        line = self._render(level, message)
        with self._lock:
            # the file gets every level, the console only what passes min_level
            if self.log_file:
                self._to_file(line)
            if self.LEVELS.get(level.lower(), 0) >= self.min_level:
                self._to_console(line, level)

    def debug(self, message):
        self.log("DEBUG", message)

    def info(self, message):
        self.log("INFO", message)

    def success(self, message):
        self.log("SUCCESS", message)

    def warning(self, message):
        self.log("WARNING", message)

    def error(self, message):
        self.log("ERROR", message)
