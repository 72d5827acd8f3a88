"""
Crypto Cluster Analytics Module
================================
Groups crypto assets by the shape of their daily feature trajectories,
scores each group on recent performance, and forecasts each group's
mean price.

Components:
  features     — Raw table validation and per-asset feature engineering
  reduction    — Standardization + principal components
  clustering   — DTW distances and medoid (PAM) clustering
  scoring      — Trailing-window cluster performance and Buy/Sell/Hold
  arima        — Stepwise automatic ARIMA selection
  forecasting  — Cluster mean-price series and interval forecasts
  pipeline     — Orchestrates every stage into a PipelineReport
  report       — Tables / JSON / text renderings of a report
  synthetic    — Seeded demo price universe
"""
