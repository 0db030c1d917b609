"""
数据流分层架构
  Layer 0 – Gateway      : 全局限速网关（所有对外请求的唯一出口）
  Layer 1 – Acquisition  : 数据获取（CoinGecko / Binance）
  Layer 2 – Cache        : 进程内 TTL 缓存，数据源故障时返回过期数据
  Layer 3 – Processing   : 数据清洗与格式化
  Layer 4 – Analysis     : 技术指标计算
  Layer 5 – Signal       : 多指标投票融合
"""
