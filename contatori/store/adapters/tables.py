from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class WorkOrderRow(Base):
    __tablename__ = "commesse"

    id = Column(Integer, primary_key=True)
    tipo_attivita = Column(String(255))
    committente = Column(String(255))


class OperatorRow(Base):
    __tablename__ = "operatori"

    id = Column(Integer, primary_key=True)
    nome = Column(String(100), nullable=False)
    cognome = Column(String(100), nullable=False)
    telefono = Column(String(50))


class AppointmentRow(Base):
    __tablename__ = "pianificazioni"

    id = Column(Integer, primary_key=True, index=True)
    nome_utente = Column(String(255))
    indirizzo = Column(String(255))
    comune = Column(String(255))
    matricola = Column(String(100), index=True, nullable=False)
    pdr_pdp = Column(String(100))
    data_appuntamento = Column(Date, nullable=False)
    fascia_oraria = Column(String(20), nullable=False)
    telefono = Column(String(50))
    commessa_id = Column(Integer, ForeignKey("commesse.id"))
    operatore_id = Column(Integer, ForeignKey("operatori.id"))
    # Legacy rows name the operator as free text ("Nome Cognome") instead of a FK
    operatore = Column(String(255))
    stato = Column(String(50), default="programmato")
    note_riprogrammazione = Column(Text)
    data_conferma = Column(DateTime)
    data_modifica = Column(DateTime)

    work_order = relationship(WorkOrderRow)
    operator = relationship(OperatorRow)


SLOT_INDEX = Index(
    "ix_pianificazioni_data_fascia",
    AppointmentRow.data_appuntamento,
    AppointmentRow.fascia_oraria,
)


class CallLogRow(Base):
    __tablename__ = "call_logs"

    id = Column(Integer, primary_key=True)
    matricola = Column(String(100))
    action_taken = Column(String(50))
    details = Column(Text)
    timestamp = Column(DateTime)
