"""
FormRules CLI Entry Point
=========================

Allows running formrules as a module: python -m formrules
"""

from formrules.cli.main import main

if __name__ == "__main__":
    main()
