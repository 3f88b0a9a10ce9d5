"""
员工服务 - 账号与认证
"""
from typing import Optional
from sqlalchemy.orm import Session
from app.models.ontology import Employee, EmployeeRole
from app.security.auth import get_password_hash, verify_password, create_access_token


class EmployeeService:
    """员工服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_employee_by_username(self, username: str) -> Optional[Employee]:
        """根据用户名获取员工"""
        return self.db.query(Employee).filter(Employee.username == username).first()

    def create_employee(self, username: str, password: str, name: str,
                        role: EmployeeRole, phone: Optional[str] = None) -> Employee:
        """创建员工"""
        if self.get_employee_by_username(username):
            raise ValueError(f"用户名 '{username}' 已存在")

        employee = Employee(
            username=username,
            password_hash=get_password_hash(password),
            name=name,
            phone=phone,
            role=role
        )
        self.db.add(employee)
        self.db.commit()
        self.db.refresh(employee)
        return employee

    def authenticate(self, username: str, password: str) -> Optional[dict]:
        """认证登录"""
        employee = self.get_employee_by_username(username)
        if not employee:
            return None

        if not employee.is_active:
            raise ValueError("账号已停用")

        if not verify_password(password, employee.password_hash):
            return None

        token = create_access_token(employee.id, employee.role)

        return {
            'access_token': token,
            'token_type': 'bearer',
            'employee': {
                'id': employee.id,
                'username': employee.username,
                'name': employee.name,
                'phone': employee.phone,
                'role': employee.role,
                'is_active': employee.is_active,
                'created_at': employee.created_at
            }
        }
