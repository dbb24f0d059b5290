"""JSON format output formatter"""

import json
from typing import Any


class JSONFormatter:
    """JSON format output formatter"""

    @staticmethod
    def format(data: Any) -> str:
        """Pretty-printed JSON; values json cannot encode are rendered with str()"""
        return json.dumps(data, indent=2, default=str)

    @staticmethod
    def save(data: Any, output_path: str):
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(JSONFormatter.format(data))
