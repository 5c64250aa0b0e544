"""
Serverless entry point for the Gasless Arcade backend
Routes under /api/* reach the FastAPI app with the prefix stripped.
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from mangum import Mangum

from arcade.server.app import app

# No lifespan in a serverless runtime, so invoices are not swept here
handler = Mangum(app, lifespan="off", api_gateway_base_path="/api")
