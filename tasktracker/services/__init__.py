"""Сервисный слой: операции над задачами и жизненный цикл worker'а."""
