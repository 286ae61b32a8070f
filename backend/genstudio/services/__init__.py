"""Generation services.

Image jobs run over an authenticated websocket session; video jobs use the
HTTP pattern:
  POST create task → poll status until terminal or attempt budget exhausted
"""
