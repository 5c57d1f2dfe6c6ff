"""Allow running as: python -m session_allow"""

from .cli import main

main()
