"""
Sprint report generator for Azure DevOps
Fetches a sprint's work items and team capacity and renders Markdown reports
"""
__version__ = "1.0.0"
