"""run-check 入口点。

支持: python -m run_check
"""

from .app import main

if __name__ == "__main__":
    main()
