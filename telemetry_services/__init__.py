"""Servicios de telemetría: ingesta, alarmas por umbral, notificaciones y analítica.

Subpaquetes:
- common: configuración, BD, reloj
- ingest_api: ingesta de lecturas, ciclo de vida de alarmas, notificaciones y API HTTP
- analytics: detección de anomalías, predicción y reportes
- jobs: runners de línea de comandos
"""

__version__ = "0.4.0"
