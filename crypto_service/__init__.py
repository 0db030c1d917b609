"""
Crypto 行情与技术信号服务
独立的行情数据微服务，提供 HTTP 接口

架构分层：
  网关层     (Gateway)      → 全局限速，串行化所有对外请求
  数据获取层 (Acquisition)  → 从 CoinGecko / Binance 拉取原始数据
  缓存层     (Cache)        → 进程内 TTL 缓存，数据源故障时返回过期数据
  处理层     (Processing)   → 数据清洗、排序、标准化
  分析层     (Analysis)     → 技术指标计算
  信号层     (Signal)       → 多指标投票融合
"""

__version__ = "1.0.0"
