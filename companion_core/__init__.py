"""
Companion Core - ассессмент личности и контент персонажа-компаньона

Big Five опросник (100 вопросов), сигнатура личности, кэш сгенерированного
контента по сигнатуре, маршрутизация сообщений и статистика профилей.
"""

__version__ = "1.0.0"
