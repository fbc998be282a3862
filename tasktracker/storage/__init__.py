"""Хранилище задач (внешний коллаборатор message bus)."""
