"""
MPZ Hotel 主应用入口
预订生命周期与计费后端
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.audit_database import close_audit_db, get_audit_session_factory
from app.config import settings
from app.database import init_db
from app.routers import auth, bookings, audit_logs

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时执行
    # 初始化数据库
    init_db()
    logger.info("Database initialized")

    # 审计库为旁路连接，失败不影响启动
    if settings.AUDIT_ENABLED and get_audit_session_factory() is None:
        logger.warning("Starting without audit logging")

    yield

    # 关闭时释放审计库连接
    close_audit_db()


# 创建应用
app = FastAPI(
    title=f"{settings.APP_NAME} - 酒店管理系统",
    description="预订、发票号与超时退房罚金管理",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应限制具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(auth.router)
app.include_router(bookings.router)
app.include_router(audit_logs.router)


@app.get("/")
def root():
    """根路径"""
    return {
        "name": f"{settings.APP_NAME} - 酒店管理系统",
        "version": "1.0.0",
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
