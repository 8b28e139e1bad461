"""Support analysis of parsed query blocks."""

from .support_checker import AnalysisIssue, AnalysisResult, SourcePosition, analyze_support

__all__ = ["AnalysisIssue", "AnalysisResult", "SourcePosition", "analyze_support"]
