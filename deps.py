# deps.py
from fastapi import Request


def get_ledger(request: Request):
  return request.app.state.ledger


def get_gateway(request: Request):
  return request.app.state.gateway


def get_monitor(request: Request):
  return request.app.state.monitor
