import math
from typing import Tuple

from lexirank.constants import GlickoConstants

_PI_SQUARED = math.pi * math.pi


class Glicko2Calculator:
    """Handles Glicko-2 rating calculations with words as opponents"""
    
    @staticmethod
    def to_glicko_scale(rating: float, rd: float) -> Tuple[float, float]:
        """
        Convert a rating and RD to the internal Glicko-2 scale (mu, phi)
        
        Args:
            rating: Rating on the display scale
            rd: Rating deviation on the display scale
            
        Returns:
            Tuple of (mu, phi)
        """
        scale = GlickoConstants.SCALE
        return (rating - GlickoConstants.INITIAL_RATING) / scale, rd / scale
    
    @staticmethod
    def from_glicko_scale(mu: float, phi: float) -> Tuple[float, float]:
        scale = GlickoConstants.SCALE
        return mu * scale + GlickoConstants.INITIAL_RATING, phi * scale
    
    @staticmethod
    def g(phi: float) -> float:
        return 1 / math.sqrt(1 + (3 * phi * phi) / _PI_SQUARED)
    
    @staticmethod
    def expected_score(mu: float, opponent_mu: float, opponent_phi: float) -> float:
        """
        Calculate the expected score against an opponent
        
        Args:
            mu: Player rating on the Glicko-2 scale
            opponent_mu: Opponent rating on the Glicko-2 scale
            opponent_phi: Opponent RD on the Glicko-2 scale
            
        Returns:
            Expected score (0.0 to 1.0)
        """
        return 1 / (1 + math.exp(-Glicko2Calculator.g(opponent_phi) * (mu - opponent_mu)))
    
    @staticmethod
    def inflate_rd(rd: float, volatility: float) -> float:
        """RD after a rating period with no games, capped at the initial RD."""
        return min(GlickoConstants.INITIAL_RD, math.sqrt(rd * rd + volatility * volatility))
    
    @staticmethod
    def new_volatility(sigma: float, phi: float, variance: float, delta: float) -> float:
        """
        Solve for the new volatility with the Illinois algorithm
        
        Args:
            sigma: Current volatility
            phi: Current RD on the Glicko-2 scale
            variance: Estimated variance of the rating from game outcomes
            delta: Estimated rating improvement
            
        Returns:
            New volatility
        """
        tau = GlickoConstants.TAU
        delta_squared = delta * delta
        phi_squared = phi * phi
        a = math.log(sigma * sigma)
        
        def f(x: float) -> float:
            exp_x = math.exp(x)
            term1 = (exp_x * (delta_squared - phi_squared - variance - exp_x)) / (
                2 * (phi_squared + variance + exp_x) ** 2
            )
            return term1 - (x - a) / (tau * tau)
        
        A = a
        if delta_squared > phi_squared + variance:
            B = math.log(delta_squared - phi_squared - variance)
        else:
            B = a - 10 * tau
        f_a = f(A)
        f_b = f(B)
        
        for _ in range(GlickoConstants.MAX_ITERATIONS):
            if abs(B - A) <= GlickoConstants.CONVERGENCE_TOLERANCE or f_b == f_a:
                break
            C = A + (A - B) * f_a / (f_b - f_a)
            f_c = f(C)
            if f_c * f_b <= 0:
                A = B
                f_a = f_b
            else:
                f_a = f_a / 2
            B = C
            f_b = f_c
        
        return math.exp(A / 2)
    
    @staticmethod
    def calculate_update(rating: float, rd: float, volatility: float,
                         correct: int, wrong: int, opponent_rating: float) -> Tuple[float, float, float]:
        """
        Calculate a rating period where every answer is a game against a word
        
        Args:
            rating: Current rating
            rd: Current rating deviation
            volatility: Current volatility
            correct: Correct answers (wins)
            wrong: Wrong answers (losses)
            opponent_rating: Rating of the words faced
            
        Returns:
            Tuple of (new_rating, new_rd, new_volatility), clamped to the
            configured rating and RD ranges
        """
        total = correct + wrong
        if total == 0:
            return rating, Glicko2Calculator.inflate_rd(rd, volatility), volatility
        
        mu, phi = Glicko2Calculator.to_glicko_scale(rating, rd)
        opponent_mu, opponent_phi = Glicko2Calculator.to_glicko_scale(
            opponent_rating, GlickoConstants.WORD_OPPONENT_RD
        )
        
        g_phi = Glicko2Calculator.g(opponent_phi)
        expected = Glicko2Calculator.expected_score(mu, opponent_mu, opponent_phi)
        variance = 1 / (g_phi * g_phi * expected * (1 - expected) * total)
        
        actual = correct / total
        delta = variance * g_phi * (actual - expected) * total
        
        new_sigma = Glicko2Calculator.new_volatility(volatility, phi, variance, delta)
        phi_star = math.sqrt(phi * phi + new_sigma * new_sigma)
        new_phi = 1 / math.sqrt(1 / (phi_star * phi_star) + 1 / variance)
        new_mu = mu + new_phi * new_phi * g_phi * (actual - expected) * total
        
        new_rating, new_rd = Glicko2Calculator.from_glicko_scale(new_mu, new_phi)
        new_rd = max(GlickoConstants.MIN_RD, min(GlickoConstants.INITIAL_RD, new_rd))
        new_rating = max(GlickoConstants.MIN_RATING, min(GlickoConstants.MAX_RATING, new_rating))
        return new_rating, new_rd, new_sigma
