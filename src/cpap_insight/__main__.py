"""Entry point for `python -m cpap_insight`."""

from cpap_insight.cli import main

if __name__ == "__main__":
    main()
