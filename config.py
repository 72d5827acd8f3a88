"""
Configuration for the Crypto Cluster Forecaster.
Contains default parameters for feature engineering, DTW clustering,
cluster scoring and ARIMA forecasting.
"""

# ──────────────────────────────────────────────
#  Data
# ──────────────────────────────────────────────
DEFAULT_START = "2015-01-01"    # download start for yfinance
DEFAULT_END = None              # None = up to today

CRYPTO_UNIVERSE = {
    "Major":      ["BTC-USD", "ETH-USD", "BNB-USD", "XRP-USD", "ADA-USD"],
    "Payments":   ["LTC-USD", "XLM-USD", "BCH-USD", "TRX-USD"],
    "Platforms":  ["LINK-USD", "XTZ-USD", "EOS-USD", "NEO-USD"],
    "Meme / Alt": ["DOGE-USD", "XMR-USD", "DASH-USD", "ETC-USD"],
}
DEFAULT_SYMBOLS = [s for group in CRYPTO_UNIVERSE.values() for s in group]

# ──────────────────────────────────────────────
#  Feature Engineering
# ──────────────────────────────────────────────
VOLATILITY_WINDOW = 10          # rolling stdev of daily returns
MA_SHORT_WINDOW = 10            # short moving average of close
MA_LONG_WINDOW = 30             # long moving average of close

# ──────────────────────────────────────────────
#  Dimensionality Reduction
# ──────────────────────────────────────────────
PCA_COMPONENTS = 2

# ──────────────────────────────────────────────
#  DTW Clustering
# ──────────────────────────────────────────────
N_CLUSTERS = 3
CLUSTER_SEED = 2024
CLUSTER_MAX_ITER = 100

# ──────────────────────────────────────────────
#  Cluster Scoring
# ──────────────────────────────────────────────
RECENT_WINDOW_DAYS = 30         # trailing window relative to the last date
SCORE_TIERS = 3
BUY_THRESHOLD = 7               # overall score >= 7 → Buy
SELL_THRESHOLD = 5              # overall score <= 5 → Sell, 6 → Hold

# ──────────────────────────────────────────────
#  Forecasting
# ──────────────────────────────────────────────
FORECAST_HORIZON = 180          # calendar days
FORECAST_CUTOFF = "2017-01-01"  # history used for the cluster series
SEASONAL_PERIOD = 365           # annual seasonality on daily data

ARIMA_SEARCH = {
    "max_p": 5,
    "max_q": 5,
    "max_P": 2,
    "max_Q": 2,
    "max_order": 5,             # p + q + P + Q
    "max_d": 2,
    "max_steps": 94,
    "kpss_alpha": 0.05,
    "seasonal_strength": 0.64,  # STL strength above which D = 1
    "max_seasonal_terms_period": 350,
    "min_observations": 10,
}

# ──────────────────────────────────────────────
#  Execution
# ──────────────────────────────────────────────
N_JOBS = 1                      # >1 spreads DTW pairs / cluster fits over processes
