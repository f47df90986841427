"""V1 API 路由聚合"""
from fastapi import APIRouter

from app.api.api_v1.endpoints.sales_orders import router as sales_orders_router

api_router = APIRouter()

# 订单到收款
api_router.include_router(sales_orders_router, tags=["销售单管理"])
