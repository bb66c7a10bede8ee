"""perfcompare: A/B runtime performance comparison of two web application builds."""

__version__ = "0.1.0"
