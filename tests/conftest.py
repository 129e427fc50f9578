import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def halfhourly():
    """Two summer days of half-hourly flux tower records"""
    index = pd.date_range("2024-07-01", periods=96, freq="30min")
    hour = index.hour + index.minute / 60
    daylight = np.clip(np.sin(np.pi * (hour - 6) / 12), 0, None)

    return pd.DataFrame(
        {
            "Tair": 18.0 + 8.0 * daylight,
            "pressure": np.full(96, 98.5),
            "wind": 2.0 + 2.0 * daylight,
            "ustar": 0.2 + 0.4 * daylight,
            "H": -20.0 + 250.0 * daylight,
            "LE": 10.0 + 300.0 * daylight,
            "Rn": -50.0 + 650.0 * daylight,
            "G": 0.05 * (-50.0 + 650.0 * daylight),
            "VPD": 0.3 + 1.7 * daylight,
            "GPP": 25.0 * daylight,
            "precip": np.zeros(96),
        },
        index=index,
    )
