"""
HTTP сервисы приложения.

- rides_api: заказ поездок, диспетчеризация водителей, статистика,
  оценки и оплата (FastAPI)
"""

__all__: list[str] = []
