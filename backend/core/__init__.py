"""
core - 与框架无关的业务核心

- booking: 预订提交流水线（预订号分配、发票号生成、超时退房罚金）

核心层只依赖持久化协作接口（core.booking.interfaces），
不依赖 FastAPI / SQLAlchemy，由 app 层注入具体实现。
"""
