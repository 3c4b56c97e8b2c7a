"""Unit conversions between primary and display units."""

from __future__ import annotations

_CM_PER_INCH = 2.54
_MM_PER_INCH = 25.4
_MPH_PER_KMH = 0.621371


def fahrenheit_to_celsius(f: float) -> float:
    """Convert Fahrenheit to Celsius."""
    return (f - 32.0) * 5.0 / 9.0


def celsius_to_fahrenheit(c: float) -> float:
    """Convert Celsius to Fahrenheit."""
    return c * 9.0 / 5.0 + 32.0


def cm_to_inches(cm: float) -> float:
    return cm / _CM_PER_INCH


def inches_to_cm(inches: float) -> float:
    return inches * _CM_PER_INCH


def mm_to_inches(mm: float) -> float:
    return mm / _MM_PER_INCH


def inches_to_mm(inches: float) -> float:
    return inches * _MM_PER_INCH


def kmh_to_mph(kmh: float) -> float:
    return kmh * _MPH_PER_KMH


def mph_to_kmh(mph: float) -> float:
    return mph / _MPH_PER_KMH
