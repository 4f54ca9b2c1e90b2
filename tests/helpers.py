# tests/helpers.py
from datetime import date

from evalengine.core.actor import Actor
from evalengine.core.security import create_access_token
from evalengine.models.template import (
    GradingScale, GradingScaleGrade, Template, TemplateCriterion, TemplateSection,
)
from evalengine.models.store import Store
from evalengine.models.user import User
from evalengine.services import evaluation_store


async def create_user(
    db,
    name: str,
    position: str = "Team Member",
    manager: User = None,
    role: str = "staff",
    department: str = None,
    start_date: date = None,
    store: Store = None,
) -> User:
    user = User(
        email=f"{name.lower().replace(' ', '.')}@store.test",
        name=name,
        position=position,
        role=role,
        department=department,
        manager_id=manager.id if manager else None,
        start_date=start_date,
        store_id=store.id if store else None,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def create_store(db, name: str) -> Store:
    store = Store(name=name)
    db.add(store)
    await db.commit()
    return store


async def create_scale(db, values=(1, 2, 3, 4), is_default: bool = False) -> GradingScale:
    labels = ["Improvement Needed", "Performer", "Valued", "Star", "Legend"]
    scale = GradingScale(
        name="Hands & Heart",
        is_default=is_default,
        is_active=True,
        grades=[GradingScaleGrade(value=v, label=labels[i]) for i, v in enumerate(values)],
    )
    db.add(scale)
    await db.commit()
    return scale


async def create_template(
    db, scale: GradingScale, name: str = "Team Member Review", store: Store = None
) -> Template:
    """Two sections: Hands (speed, accuracy) and Heart (hospitality + optional free-text notes)."""
    template = Template(
        name=name,
        position="Team Member",
        store_id=store.id if store else None,
        is_active=True,
        sections=[
            TemplateSection(title="Hands", order=0, criteria=[
                TemplateCriterion(title="Speed", order=0, required=True, grading_scale=scale),
                TemplateCriterion(title="Accuracy", order=1, required=True, grading_scale=scale),
            ]),
            TemplateSection(title="Heart", order=1, criteria=[
                TemplateCriterion(title="Hospitality", order=0, required=True, grading_scale=scale),
                TemplateCriterion(title="Notes", order=1, required=False, grading_scale=None),
            ]),
        ],
    )
    db.add(template)
    await db.commit()
    return template


def criterion_ids(template: Template) -> dict:
    return {c.title: str(c.id) for s in template.sections for c in s.criteria}


def full_ratings(template: Template, value: float = 3) -> dict:
    ids = criterion_ids(template)
    return {
        ids["Speed"]: {"rating": value, "comment": ""},
        ids["Accuracy"]: {"rating": value, "comment": ""},
        ids["Hospitality"]: {"rating": value, "comment": ""},
    }


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


async def create_evaluation(db, manager: User, employee: User, template: Template, scheduled_date: date):
    results = await evaluation_store.create_evaluations(
        db, Actor.from_user(manager), [employee.id], template.id, scheduled_date
    )
    assert results[0].created, results[0]
    return await evaluation_store.get_evaluation(db, results[0].evaluation_id)
