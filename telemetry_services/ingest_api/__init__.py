"""Servicio HTTP de ingesta y alarmas."""
