"""
初始化数据脚本
创建默认员工账号

默认账号（密码均为 123456）：
  sysadmin   系统管理员
  manager    张经理
  front1     李前台
"""
from app.database import SessionLocal, init_db
from app.models.ontology import EmployeeRole
from app.services.employee_service import EmployeeService

DEFAULT_EMPLOYEES = [
    ("sysadmin", "系统管理员", EmployeeRole.SYSADMIN),
    ("manager", "张经理", EmployeeRole.MANAGER),
    ("front1", "李前台", EmployeeRole.RECEPTIONIST),
]


def init_employees(db):
    """初始化员工账号（已存在则跳过）"""
    service = EmployeeService(db)
    created = 0
    for username, name, role in DEFAULT_EMPLOYEES:
        if service.get_employee_by_username(username):
            continue
        service.create_employee(username, "123456", name, role)
        created += 1
    return created


def main():
    init_db()
    db = SessionLocal()
    try:
        created = init_employees(db)
        print(f"✓ 员工账号初始化完成，新建 {created} 个")
    finally:
        db.close()


if __name__ == "__main__":
    main()
