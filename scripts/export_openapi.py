import sys
import os

# Add the project root to sys.path so we can import api_server
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import json
from api_server import app

schema = app.openapi()

print(json.dumps(schema, ensure_ascii=False, indent=2))
