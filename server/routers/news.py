"""The news of the current user."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from server.security import get_current_user, require_csrf
from services import news as news_service
from services.shared import dao
from services.shared.models import User

router = APIRouter(tags=["news"])


@router.get("/news")
def show_news(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    collection = dao.collection_of_type(db, user.id, "news")
    links = dao.links_of_collection(db, collection.id)
    return {"links": [link.to_dict() for link in links]}


@router.post("/news")
def fill_news(user: User = Depends(require_csrf), db: Session = Depends(get_db)):
    picked = news_service.NewsPicker().pick(db, user)
    db.commit()
    return {"links": [link.to_dict() for link in picked]}


@router.post("/news/read")
def mark_news_as_read(user: User = Depends(require_csrf), db: Session = Depends(get_db)):
    count = news_service.mark_news_as_read(db, user)
    db.commit()
    return {"links_moved": count}


@router.post("/news/read-later")
def read_news_later(user: User = Depends(require_csrf), db: Session = Depends(get_db)):
    count = news_service.read_news_later(db, user)
    db.commit()
    return {"links_moved": count}
