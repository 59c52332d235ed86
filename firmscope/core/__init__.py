"""Analysis orchestration and report generation."""

from .analyzer import FirmwareAnalyzer
from .generator import ReportGenerator

__all__ = ['FirmwareAnalyzer', 'ReportGenerator']
