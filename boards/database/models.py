from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text, ForeignKey, BigInteger
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

class Chapter(Base):
    __tablename__ = 'chapters'
    
    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    is_multiplayer = Column(Boolean, nullable=False, default=False)
    
    # Relationships
    maps = relationship("Map", back_populates="chapter")
    
    def __repr__(self):
        return f"<Chapter(id={self.id}, name='{self.name}', coop={self.is_multiplayer})>"

class Map(Base):
    __tablename__ = 'maps'
    
    steam_id = Column(String(20), primary_key=True)
    name = Column(String(100), nullable=False)
    chapter_id = Column(Integer, ForeignKey('chapters.id'), nullable=False)
    is_public = Column(Boolean, default=True)
    
    # Relationships
    chapter = relationship("Chapter", back_populates="maps")
    
    def __repr__(self):
        return f"<Map(steam_id='{self.steam_id}', name='{self.name}')>"

class User(Base):
    __tablename__ = 'users'
    
    profile_number = Column(String(20), primary_key=True)
    board_name = Column(String(100), nullable=True)  # Overrides steam_name for display when set
    steam_name = Column(String(100), nullable=True)
    avatar = Column(Text, nullable=True)
    banned = Column(Boolean, default=False)
    
    @property
    def display_name(self) -> str:
        return self.board_name if self.board_name is not None else self.steam_name
    
    def __repr__(self):
        return f"<User(profile_number='{self.profile_number}', name='{self.display_name}')>"

class Changelog(Base):
    __tablename__ = 'changelog'
    
    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True)
    timestamp = Column(DateTime, nullable=True, index=True)  # Missing timestamps sort last
    profile_number = Column(String(20), ForeignKey('users.profile_number'), nullable=False, index=True)
    score = Column(Integer, nullable=False)  # Lower is better
    map_id = Column(String(20), ForeignKey('maps.steam_id'), nullable=False, index=True)
    demo_id = Column(BigInteger, nullable=True)
    youtube_id = Column(String(100), nullable=True)
    banned = Column(Boolean, default=False)
    verified = Column(Boolean, nullable=True)
    previous_id = Column(BigInteger, nullable=True)
    coop_id = Column(BigInteger, nullable=True)
    pre_rank = Column(Integer, nullable=True)
    post_rank = Column(Integer, nullable=True)
    score_delta = Column(Integer, nullable=True)
    submission = Column(Boolean, default=False)
    category_id = Column(Integer, nullable=False, default=1)
    note = Column(Text, nullable=True)
    admin_note = Column(Text, nullable=True)
    
    def __repr__(self):
        return f"<Changelog(id={self.id}, map='{self.map_id}', user='{self.profile_number}', score={self.score})>"
