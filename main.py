"""gemini-grounding - Gemini grounded search over MCP

Starts the MCP server on stdio.
"""

from gemini_grounding.server import main

if __name__ == "__main__":
    main()
