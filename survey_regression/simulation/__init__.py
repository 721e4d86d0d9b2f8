"""Simulation module: halo-effect satisfaction survey generator."""
from .survey_simulator import SurveySimulator, generate_survey_data
