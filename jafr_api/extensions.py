from __future__ import annotations

from flask_smorest import Api

api = Api()
