"""
Scripts for the PaCMAP digits embedding demo.

This package contains:
- Data acquisition and reshaping (preprocessing/)
- PaCMAP dimension reduction (analysis/)
- Interactive scatter plots (visualization/)
- The end-to-end pipeline (pipeline.py)
"""
