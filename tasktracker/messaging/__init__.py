"""
Модуль сообщений (RabbitMQ + aio-pika).

Содержит:
- broker: менеджер соединения (publish/subscribe/ack/nack)
- models/codec: конверты событий и их JSON-представление
- processor/handlers: consumer host и обработчики событий
- publisher: публикация событий из TaskService
- worker: точка входа consumer процесса
"""
