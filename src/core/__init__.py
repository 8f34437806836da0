# src/core/__init__.py
"""
Доменный слой: жизненный цикл поездки, тарифы, заработок,
рейтинги и оплата. Инфраструктура передаётся в сервисы снаружи.
"""
